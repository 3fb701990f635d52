from __future__ import annotations

from typing import Optional


class PyScratchError(Exception):
    """Base class for every failure surfaced by the pipeline core."""


class StorageError(PyScratchError):
    """Raised when the artifact layer cannot complete a read/write/delete."""


class ArtifactNotFound(StorageError):
    """The artifact (file or directory) does not exist."""


class ArtifactExists(StorageError):
    """The artifact already exists and overwriting was not allowed."""


class NoActiveSession(PyScratchError):
    def __init__(self, message: str = "No active session. Create or select a session first.") -> None:
        super().__init__(message)


class InvalidNode(PyScratchError):
    """Missing/unresolvable node, or a node that violates the graph invariants."""


class ParentNotFound(PyScratchError):
    """A transform's parent node is no longer present in the session."""


class CompilationError(PyScratchError):
    """The harness or user script could not be compiled into a runnable artifact."""


class TransformRuntimeError(PyScratchError):
    """
    The compiled transform exited non-zero.

    stderr carries whatever the child process wrote to standard error.
    """

    def __init__(self, stderr: str, exit_code: Optional[int] = None) -> None:
        super().__init__(stderr or "Unknown error")
        self.stderr = stderr
        self.exit_code = exit_code


class Cancelled(PyScratchError):
    """The run was cancelled by the user. No output was produced."""

    def __init__(self, message: str = "Cancelled by user") -> None:
        super().__init__(message)
