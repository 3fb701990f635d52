from __future__ import annotations

from pathlib import Path, PurePosixPath

from .errors import StorageError
from .settings import storage_home

METADATA_FILENAME = "pipeline.json"
ACTIVE_SESSION_FILENAME = "active_session.json"


def storage_root() -> Path:
    return storage_home()


def active_session_path(root: Path) -> Path:
    return root / ACTIVE_SESSION_FILENAME


def check_session_id(session_id: str) -> str:
    """Session ids name exactly one directory directly below the storage root."""
    if session_id in ("", ".", "..") or "/" in session_id or "\\" in session_id:
        raise StorageError(f"Invalid session id: {session_id!r}")
    return session_id


def session_key(session_id: str) -> str:
    """Artifact-store path of a session directory."""
    return str(PurePosixPath(check_session_id(session_id)))


def artifact_key(session_id: str, filename: str) -> str:
    """Artifact-store path of a node's backing file."""
    return str(PurePosixPath(check_session_id(session_id)) / filename)


def metadata_key(session_id: str) -> str:
    return artifact_key(session_id, METADATA_FILENAME)
