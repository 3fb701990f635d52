from __future__ import annotations

import asyncio
import logging
import shutil
import zipapp
from pathlib import Path
from typing import Protocol, Sequence

from ..errors import CompilationError

logger = logging.getLogger(__name__)


class Compiler(Protocol):
    async def build(self, entry_sources: Sequence[Path], out_path: Path) -> Path:
        """Bundle entry_sources into one runnable artifact at out_path."""
        ...


def check_syntax(path: Path) -> None:
    """Raise CompilationError with file/line context if path is not valid Python."""
    try:
        source = path.read_bytes()
        compile(source, str(path.name), "exec", dont_inherit=True)
    except SyntaxError as e:
        where = f"{e.filename or path.name}:{e.lineno or '?'}"
        detail = (e.text or "").rstrip()
        msg = f"{where}: {e.msg}"
        if detail:
            msg += f"\n    {detail.strip()}"
        raise CompilationError(msg) from e
    except (OSError, ValueError) as e:
        raise CompilationError(f"{path.name}: {e}") from e


class ZipappCompiler:
    """
    Bundles a harness and its user script into a standalone .pyz.

    Every source is syntax-checked first so bad scripts fail here rather than in
    the child process. One of the sources must be __main__.py.
    """

    def __init__(self, compressed: bool = False) -> None:
        self.compressed = compressed

    async def build(self, entry_sources: Sequence[Path], out_path: Path) -> Path:
        return await asyncio.to_thread(self._build, list(entry_sources), Path(out_path))

    def _build(self, entry_sources: list[Path], out_path: Path) -> Path:
        if not any(p.name == "__main__.py" for p in entry_sources):
            raise CompilationError("Bundle has no __main__.py entry point.")

        for src in entry_sources:
            check_syntax(src)

        staging = out_path.parent / f"{out_path.stem}_bundle"
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)
        for src in entry_sources:
            shutil.copyfile(src, staging / src.name)

        try:
            zipapp.create_archive(staging, target=out_path, compressed=self.compressed)
        except (OSError, zipapp.ZipAppError) as e:
            raise CompilationError(f"Bundling failed: {e}") from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.debug("bundled %d source(s) into %s", len(entry_sources), out_path)
        return out_path
