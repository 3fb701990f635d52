from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Sequence

import pytest

from pyscratch.artifacts import LocalArtifactStore
from pyscratch.models import NodeType, PipelineNode
from pyscratch.session import SessionContext
from pyscratch.store import PipelineStore


@pytest.fixture()
def store(tmp_path: Path) -> PipelineStore:
    return PipelineStore(LocalArtifactStore(tmp_path / "store"), SessionContext())


@pytest.fixture()
def session_id(store: PipelineStore) -> str:
    return store.create_session("test")


@pytest.fixture()
def workspace_root(tmp_path: Path) -> Path:
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


def add_pipeline(
    store: PipelineStore,
    session_id: str,
    *,
    input_name: str = "data.json",
    input_content: bytes = b'{"a": 1}',
    script: str = "def transform(ctx):\n    return ctx.data['a']\n",
) -> tuple[PipelineNode, PipelineNode]:
    """Adds input -> transform to a session and writes both files."""
    inp = PipelineNode(id="in1", type=NodeType.INPUT, label=input_name, filename=input_name)
    store.write_artifact(session_id, input_name, input_content)
    store.add_node(session_id, inp)

    tr = PipelineNode(
        id="tr1", type=NodeType.TRANSFORM, label="transform-tr1.py", filename="transform-tr1.py", parent_id="in1"
    )
    store.write_artifact(session_id, tr.filename, script.encode("utf-8"))
    store.add_node(session_id, tr)
    return inp, tr


class FakeCompiler:
    """Records what it was asked to bundle; optionally fails like a real compiler."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.calls: list[list[Path]] = []

    async def build(self, entry_sources: Sequence[Path], out_path: Path) -> Path:
        self.calls.append(list(entry_sources))
        if self.error is not None:
            raise self.error
        out_path.write_bytes(b"fake artifact")
        return out_path


class FakeChild:
    def __init__(self, runner: "FakeRunner") -> None:
        self.runner = runner
        self.killed = asyncio.Event()

    async def wait(self) -> int:
        if self.runner.hang:
            await self.killed.wait()
            return -9
        return self.runner.exit_code

    def kill(self) -> None:
        self.runner.kill_count += 1
        self.killed.set()


class FakeRunner:
    """
    Stands in for a child process: emits canned stdout/stderr and an exit code,
    or hangs until killed.
    """

    def __init__(
        self,
        stdout: bytes = b"",
        stderr: bytes = b"",
        exit_code: int = 0,
        hang: bool = False,
        on_spawn=None,
    ) -> None:
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        self.hang = hang
        self.on_spawn = on_spawn
        self.kill_count = 0
        self.spawned: list[tuple[Path, list[str], Optional[Path]]] = []

    async def spawn(self, artifact, args, *, cwd=None, on_stdout=None, on_stderr=None) -> FakeChild:
        self.spawned.append((artifact, list(args), cwd))
        if self.stdout and on_stdout is not None:
            on_stdout(self.stdout)
        if self.stderr and on_stderr is not None:
            on_stderr(self.stderr)
        if self.on_spawn is not None:
            self.on_spawn()
        return FakeChild(self)
