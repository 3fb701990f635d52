"""
Artifact storage: raw file access keyed by '<session_id>/<filename>'.

The pipeline core only depends on the ArtifactStore protocol. LocalArtifactStore
is the filesystem implementation used by the CLI and the tests.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path, PurePosixPath
from typing import Protocol

from .errors import ArtifactExists, ArtifactNotFound, StorageError

logger = logging.getLogger(__name__)


class ArtifactStore(Protocol):
    def read(self, path: str) -> bytes: ...

    def write(self, path: str, data: bytes, *, create: bool = True, overwrite: bool = True) -> None: ...

    def delete(self, path: str, *, recursive: bool = False) -> None: ...

    def list(self, path: str = "") -> list[tuple[str, bool]]: ...

    def create_dir(self, path: str) -> None: ...

    def exists(self, path: str) -> bool: ...

    def local_path(self, path: str) -> Path: ...


class LocalArtifactStore:
    """Stores artifacts as plain files below a root directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage root {self.root}: {e}") from e

    def local_path(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise StorageError(f"Artifact path escapes the storage root: {path}")
        return self.root.joinpath(*rel.parts)

    def exists(self, path: str) -> bool:
        return self.local_path(path).exists()

    def read(self, path: str) -> bytes:
        target = self.local_path(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise ArtifactNotFound(path) from e
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def write(self, path: str, data: bytes, *, create: bool = True, overwrite: bool = True) -> None:
        target = self.local_path(path)
        exists = target.exists()
        if not exists and not create:
            raise ArtifactNotFound(path)
        if exists and not overwrite:
            raise ArtifactExists(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e
        logger.debug("wrote %s (%d bytes)", path, len(data))

    def delete(self, path: str, *, recursive: bool = False) -> None:
        target = self.local_path(path)
        if target == self.root:
            raise StorageError("Refusing to delete the storage root")
        if not target.exists():
            raise ArtifactNotFound(path)
        try:
            if target.is_dir():
                if recursive:
                    shutil.rmtree(target)
                else:
                    target.rmdir()
            else:
                target.unlink()
        except FileNotFoundError as e:
            raise ArtifactNotFound(path) from e
        except OSError as e:
            raise StorageError(f"Cannot delete {path}: {e}") from e
        logger.debug("deleted %s", path)

    def list(self, path: str = "") -> list[tuple[str, bool]]:
        target = self.local_path(path) if path else self.root
        try:
            return sorted((entry.name, entry.is_dir()) for entry in target.iterdir())
        except FileNotFoundError as e:
            raise ArtifactNotFound(path) from e
        except OSError as e:
            raise StorageError(f"Cannot list {path}: {e}") from e

    def create_dir(self, path: str) -> None:
        try:
            self.local_path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create directory {path}: {e}") from e
