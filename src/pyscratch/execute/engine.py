from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from ..errors import Cancelled, InvalidNode, ParentNotFound, TransformRuntimeError
from ..models import NodeType, PipelineNode
from ..settings import python_executable
from ..store import PipelineStore
from ..utils import new_id
from .compiler import Compiler, ZipappCompiler
from .harness import TransformHarnessBuilder
from .runner import ChildProcess, ProcessRunner, SubprocessRunner

logger = logging.getLogger(__name__)

TransformRef = Union[PipelineNode, str, Path]
ProgressCallback = Callable[[str], None]

_REAP_TIMEOUT = 5.0


@dataclass(frozen=True)
class RunResult:
    """Outcome of a successful transform run."""

    session_id: str
    transform_id: str
    output_node: PipelineNode
    created: bool
    stdout: str
    stderr: str
    duration_s: float


def release_workspace(workspace: Path) -> None:
    """Best-effort removal of a run's temporary directory."""
    try:
        shutil.rmtree(workspace)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug("could not remove workspace %s: %s", workspace, e)


async def _reap(waiter: "asyncio.Future[int]") -> None:
    done, _ = await asyncio.wait({waiter}, timeout=_REAP_TIMEOUT)
    if waiter not in done:
        logger.warning("child did not exit within %.1fs of being killed", _REAP_TIMEOUT)
        waiter.cancel()
        await asyncio.gather(waiter, return_exceptions=True)
    elif not waiter.cancelled():
        waiter.exception()  # mark retrieved


class TransformExecutionEngine:
    """
    Runs a transform node against its parent's artifact and writes the result
    into the transform's output node (creating it on the first run).

    Each run is isolated in a fresh temporary workspace which is always removed,
    whatever step fails.
    """

    def __init__(
        self,
        store: PipelineStore,
        *,
        compiler: Optional[Compiler] = None,
        runner: Optional[ProcessRunner] = None,
        harness: Optional[TransformHarnessBuilder] = None,
        interpreter: Optional[str] = None,
        timeout: Optional[float] = None,
        workspace_root: Optional[Path] = None,
    ) -> None:
        self.store = store
        self.compiler = compiler or ZipappCompiler()
        if runner is None:
            runner = SubprocessRunner(interpreter or python_executable())
        self.runner = runner
        self.harness = harness or TransformHarnessBuilder()
        self.timeout = timeout
        self.workspace_root = workspace_root

    # ---- resolution ----

    def resolve_transform(self, session_id: str, ref: TransformRef) -> PipelineNode:
        """
        Accepts the node itself, a node id, or a filename/path of the node's
        artifact (for runs triggered from an open file).
        """
        node: Optional[PipelineNode]
        if isinstance(ref, PipelineNode):
            node = ref
        elif isinstance(ref, Path):
            node = self.store.find_node_by_filename(session_id, ref.name)
        else:
            node = self.store.get_node(session_id, ref)
            if node is None:
                node = self.store.find_node_by_filename(session_id, Path(ref).name)

        if node is None or node.type != NodeType.TRANSFORM or not node.parent_id:
            raise InvalidNode("Invalid transformation node")
        return node

    # ---- run ----

    async def run(
        self,
        ref: TransformRef,
        *,
        cancel: Optional[asyncio.Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> RunResult:
        session_id = self.store.context.require()
        node = self.resolve_transform(session_id, ref)

        parent = self.store.get_node(session_id, node.parent_id)
        if parent is None:
            raise ParentNotFound(f"Parent node '{node.parent_id}' not found")

        started = time.monotonic()
        workspace = Path(tempfile.mkdtemp(prefix="pyscratch-", dir=self.workspace_root))
        logger.info("running transform %s (%s) in %s", node.id, node.filename, workspace)
        try:
            stdout, stderr = await self._execute_in(
                workspace, session_id, node, parent, cancel=cancel, progress=progress
            )
            _notify(progress, "Writing output...")
            output_node, created = self._reconcile(session_id, node, stdout)
        finally:
            release_workspace(workspace)

        result = RunResult(
            session_id=session_id,
            transform_id=node.id,
            output_node=output_node,
            created=created,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            duration_s=time.monotonic() - started,
        )
        logger.info(
            "transform %s finished in %.2fs -> %s (%s)",
            node.id, result.duration_s, output_node.filename, "new" if created else "updated",
        )
        return result

    async def _execute_in(
        self,
        workspace: Path,
        session_id: str,
        node: PipelineNode,
        parent: PipelineNode,
        *,
        cancel: Optional[asyncio.Event],
        progress: Optional[ProgressCallback],
    ) -> tuple[bytes, bytes]:
        # 1. Materialize input and script
        input_dir = workspace / "input"
        src_dir = workspace / "src"
        build_dir = workspace / "build"
        for d in (input_dir, src_dir, build_dir):
            d.mkdir()

        input_path = input_dir / Path(parent.filename).name
        input_path.write_bytes(self.store.read_artifact(session_id, parent.filename))
        script = self.store.read_artifact(session_id, node.filename)

        # 2. Harness
        files = self.harness.write(src_dir, script)

        # 3. Compile
        _notify(progress, "Compiling transform...")
        artifact = await self.compiler.build(files.entry_sources(), build_dir / "transform.pyz")

        # 4. Execute
        _notify(progress, "Running transformation...")
        return await self._execute(artifact, input_path, workspace, cancel=cancel)

    async def _execute(
        self,
        artifact: Path,
        input_path: Path,
        cwd: Path,
        *,
        cancel: Optional[asyncio.Event],
    ) -> tuple[bytes, bytes]:
        out_chunks: list[bytes] = []
        err_chunks: list[bytes] = []

        child: ChildProcess = await self.runner.spawn(
            artifact,
            [str(input_path)],
            cwd=cwd,
            on_stdout=out_chunks.append,
            on_stderr=err_chunks.append,
        )
        waiter = asyncio.ensure_future(child.wait())
        cancel_waiter = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        pending = {waiter} if cancel_waiter is None else {waiter, cancel_waiter}

        try:
            done, _ = await asyncio.wait(pending, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            child.kill()
            await _reap(waiter)
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if cancel_waiter is not None and cancel_waiter in done:
            child.kill()
            await _reap(waiter)
            logger.info("transform run cancelled")
            raise Cancelled()

        if waiter not in done:
            child.kill()
            await _reap(waiter)
            raise TransformRuntimeError(f"Transform timed out after {self.timeout:g} seconds")

        code = waiter.result()
        stdout = b"".join(out_chunks)
        stderr = b"".join(err_chunks)
        if code != 0:
            text = stderr.decode("utf-8", errors="replace")
            logger.info("transform exited with status %s", code)
            raise TransformRuntimeError(text, exit_code=code)
        return stdout, stderr

    # ---- reconcile ----

    def _reconcile(self, session_id: str, node: PipelineNode, stdout: bytes) -> tuple[PipelineNode, bool]:
        existing = self.store.find_output_for(session_id, node.id)
        if existing is not None:
            self.store.write_artifact(session_id, existing.filename, stdout)
            return existing, False

        output_id = new_id()
        filename = f"output-{output_id}.json"
        self.store.write_artifact(session_id, filename, stdout)
        output = PipelineNode(
            id=output_id,
            type=NodeType.OUTPUT,
            label=filename,
            filename=filename,
            parent_id=node.id,
        )
        self.store.add_node(session_id, output)
        return output, True


def _notify(progress: Optional[ProgressCallback], message: str) -> None:
    if progress is not None:
        progress(message)
