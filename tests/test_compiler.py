from __future__ import annotations

import asyncio
import zipfile
from pathlib import Path

import pytest

from pyscratch.errors import CompilationError
from pyscratch.execute.compiler import ZipappCompiler
from pyscratch.execute.harness import TransformHarnessBuilder


def _sources(tmp_path: Path, script: str) -> list[Path]:
    src = tmp_path / "src"
    src.mkdir()
    return TransformHarnessBuilder().write(src, script.encode("utf-8")).entry_sources()


def test_zipapp_bundles_all_sources(tmp_path: Path) -> None:
    sources = _sources(tmp_path, "def transform(ctx):\n    return 1\n")
    out = asyncio.run(ZipappCompiler().build(sources, tmp_path / "out.pyz"))

    assert out == tmp_path / "out.pyz"
    with zipfile.ZipFile(out) as zf:
        assert set(zf.namelist()) == {"__main__.py", "_pyscratch_runtime.py", "user_transform.py"}
    # staging directory is not left behind
    assert not (tmp_path / "out_bundle").exists()


def test_syntax_error_is_a_compilation_error(tmp_path: Path) -> None:
    sources = _sources(tmp_path, "def transform(ctx):\n    return (1,\n")

    with pytest.raises(CompilationError) as ei:
        asyncio.run(ZipappCompiler().build(sources, tmp_path / "out.pyz"))

    assert "user_transform.py" in str(ei.value)
    assert not (tmp_path / "out.pyz").exists()


def test_bundle_requires_main(tmp_path: Path) -> None:
    lone = tmp_path / "lone.py"
    lone.write_text("x = 1\n", encoding="utf-8")
    with pytest.raises(CompilationError):
        asyncio.run(ZipappCompiler().build([lone], tmp_path / "out.pyz"))
