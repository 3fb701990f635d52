from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .errors import NoActiveSession
from .events import SessionEvents
from .utils import read_json, write_json

logger = logging.getLogger(__name__)


class SessionContext:
    """
    Tracks which session is focused.

    This is an explicit handle: the store and the execution engine receive it
    instead of consulting process-wide state. When pointer_path is given the
    active id is also persisted there (active_session.json), so separate CLI
    invocations agree on the focused session.
    """

    def __init__(
        self,
        events: Optional[SessionEvents] = None,
        pointer_path: Optional[Path] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.events = events or SessionEvents()
        self.pointer_path = pointer_path
        self._session_id = session_id
        if self._session_id is None and pointer_path is not None:
            self._session_id = _load_pointer(pointer_path)

    @property
    def active_session_id(self) -> Optional[str]:
        return self._session_id

    def require(self) -> str:
        if not self._session_id:
            raise NoActiveSession()
        return self._session_id

    def activate(self, session_id: str) -> None:
        self._session_id = session_id
        if self.pointer_path is not None:
            write_json(self.pointer_path, {"session_id": session_id})
        logger.debug("active session -> %s", session_id)
        self.events.fire(session_id)

    def clear(self) -> None:
        self._session_id = None
        if self.pointer_path is not None and self.pointer_path.exists():
            self.pointer_path.unlink()
        logger.debug("active session cleared")
        self.events.fire(None)


def _load_pointer(path: Path) -> Optional[str]:
    if not path.exists():
        return None
    try:
        data = read_json(path)
    except (OSError, ValueError):
        logger.warning("ignoring unreadable active session pointer %s", path)
        return None
    sid = data.get("session_id") if isinstance(data, dict) else None
    return sid if isinstance(sid, str) and sid else None
