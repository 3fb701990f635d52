from __future__ import annotations

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[str]], None]


class SessionEvents:
    """
    Session-changed notifications.

    Fired on session create/activate/delete and on every metadata save. The
    payload is the affected session id (None when the active session was cleared).
    """

    def __init__(self) -> None:
        self._listeners: list[SessionListener] = []

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def fire(self, session_id: Optional[str]) -> None:
        for listener in list(self._listeners):
            try:
                listener(session_id)
            except Exception:
                # A broken listener must not fail the storage operation that fired it.
                logger.exception("session listener %r failed", listener)
