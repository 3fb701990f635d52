from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import NoReturn, Optional

import typer

from .actions import add_transform, create_input, export_node, import_input
from .artifacts import LocalArtifactStore
from .errors import Cancelled, InvalidNode, NoActiveSession, ParentNotFound, PyScratchError
from .execute import RunResult, TransformExecutionEngine
from .logging_config import configure_logging
from .models import PipelineNode
from .paths import active_session_path, storage_root
from .session import SessionContext
from .settings import python_executable, run_timeout
from .store import PipelineStore

app = typer.Typer(add_completion=False, help="pyscratch: scratch data pipelines (inputs -> Python transforms -> outputs)")

session_app = typer.Typer(help="Create, select and remove sessions.")
app.add_typer(session_app, name="session")

input_app = typer.Typer(help="Manage input files of the active session.")
app.add_typer(input_app, name="input")

transform_app = typer.Typer(help="Manage transform scripts of the active session.")
app.add_typer(transform_app, name="transform")

node_app = typer.Typer(help="Inspect or delete nodes of the active session.")
app.add_typer(node_app, name="node")

_NOT_FOUND = (NoActiveSession, InvalidNode, ParentNotFound)


def open_store() -> PipelineStore:
    root = storage_root()
    context = SessionContext(pointer_path=active_session_path(root))
    return PipelineStore(LocalArtifactStore(root), context)


def _fail(e: Exception) -> NoReturn:
    typer.echo(f"ERROR: {e}", err=True)
    raise typer.Exit(code=2 if isinstance(e, _NOT_FOUND) else 1)


def _echo_tree(nodes: list[PipelineNode], parent_id: Optional[str] = None, depth: int = 0) -> None:
    for n in nodes:
        if n.parent_id != parent_id:
            continue
        typer.echo(f"{'  ' * depth}[{n.type.value}] {n.label}  (id={n.id})")
        _echo_tree(nodes, n.id, depth + 1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr")) -> None:
    configure_logging(verbose)


# ---- Session commands ----


@session_app.command("new")
def session_new(name: Optional[str] = typer.Option(None, "--name", help="User-facing session name")) -> None:
    """
    Create a session under the storage root and make it active.
    """
    try:
        store = open_store()
        session_id = store.create_session(name)
        typer.echo(f"Created session {session_id}")
    except PyScratchError as e:
        _fail(e)


@session_app.command("list")
def session_list() -> None:
    """List sessions, newest first. The active one is marked with '*'."""
    try:
        store = open_store()
        active = store.context.active_session_id
        sessions = store.list_sessions()
    except PyScratchError as e:
        _fail(e)
    if not sessions:
        typer.echo("No sessions.")
        return
    for s in sessions:
        marker = "*" if s.id == active else " "
        typer.echo(f"{marker} {s.id}  {s.display_name}  ({len(s.nodes)} nodes, created {s.created})")


@session_app.command("use")
def session_use(session_id: str = typer.Argument(..., help="Session id")) -> None:
    try:
        store = open_store()
        known = any(s.id == session_id for s in store.list_sessions())
        if known:
            store.context.activate(session_id)
    except PyScratchError as e:
        _fail(e)
    if not known:
        typer.echo(f"ERROR: session {session_id} not found", err=True)
        raise typer.Exit(code=2)
    typer.echo(f"Active session: {session_id}")


@session_app.command("show")
def session_show() -> None:
    """Print the active session's pipeline as a tree."""
    try:
        store = open_store()
        session_id = store.context.require()
        metadata = store.get_metadata(session_id)
        typer.echo(f"Active Session: {metadata.display_name} ({session_id})")
        if not metadata.nodes:
            typer.echo("  (empty)")
            return
        _echo_tree(metadata.nodes)
    except PyScratchError as e:
        _fail(e)


@session_app.command("delete")
def session_delete(
    session_id: str = typer.Argument(..., help="Session id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a session and every file in it."""
    if not yes:
        typer.confirm(f"Delete session '{session_id}'?", abort=True)
    try:
        open_store().delete_session(session_id)
        typer.echo(f"Deleted session {session_id}")
    except PyScratchError as e:
        _fail(e)


@session_app.command("clear")
def session_clear(yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation")) -> None:
    """Delete all sessions."""
    if not yes:
        typer.confirm("Clear all session history?", abort=True)
    try:
        n = open_store().clear_history()
        typer.echo(f"Deleted {n} session(s).")
    except PyScratchError as e:
        _fail(e)


# ---- Node commands ----


@input_app.command("add")
def input_add(
    filename: str = typer.Argument(..., help="Name of the input file, e.g. data.json"),
    source: Optional[Path] = typer.Option(None, "--from", exists=True, dir_okay=False, help="Copy content from this file"),
) -> None:
    """
    Add an input file to the active session (empty unless --from is given).
    """
    try:
        store = open_store()
        if source is not None:
            node = import_input(store, source, filename)
        else:
            node = create_input(store, filename)
        typer.echo(f"Added input {node.filename} (id={node.id})")
    except PyScratchError as e:
        _fail(e)


@transform_app.command("add")
def transform_add(parent_id: str = typer.Argument(..., help="Id of the node to transform")) -> None:
    """Create a transform script under PARENT_ID, pre-filled with a template."""
    try:
        store = open_store()
        node = add_transform(store, parent_id)
        path = store.artifacts.local_path(store.artifact_path(store.context.require(), node.filename))
        typer.echo(f"Added transform {node.filename} (id={node.id})")
        typer.echo(f"Edit: {path}")
    except PyScratchError as e:
        _fail(e)


@node_app.command("delete")
def node_delete(node_id: str = typer.Argument(..., help="Node id")) -> None:
    """Delete a node and all of its descendants."""
    try:
        store = open_store()
        removed = store.delete_node(store.context.require(), node_id)
        typer.echo(f"Deleted {len(removed)} node(s).")
    except PyScratchError as e:
        _fail(e)


@app.command()
def export(
    node_id: str = typer.Argument(..., help="Node id"),
    destination: Path = typer.Argument(..., help="Target file or directory"),
) -> None:
    """Copy a node's file out of session storage."""
    try:
        target = export_node(open_store(), node_id, destination)
        typer.echo(f"Successfully exported to {target}")
    except PyScratchError as e:
        _fail(e)


# ---- Run ----


async def _run_interruptible(engine: TransformExecutionEngine, ref: str) -> RunResult:
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False
    try:
        return await engine.run(ref, cancel=cancel, progress=lambda msg: typer.echo(msg, err=True))
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


@app.command()
def run(ref: str = typer.Argument(..., help="Transform node id or its script filename")) -> None:
    """
    Run a transform against its parent and write the result to its output node.

    Press Ctrl-C while the transform runs to cancel it; no output is written.
    """
    try:
        store = open_store()
        engine = TransformExecutionEngine(store, interpreter=python_executable(), timeout=run_timeout())
        result = asyncio.run(_run_interruptible(engine, ref))
    except Cancelled:
        typer.echo("Cancelled.", err=True)
        raise typer.Exit(code=130)
    except PyScratchError as e:
        _fail(e)

    verb = "Created" if result.created else "Updated"
    typer.echo(f"{verb} output {result.output_node.filename} (id={result.output_node.id}) in {result.duration_s:.2f}s")
    if result.stdout.strip():
        typer.echo(result.stdout.rstrip())
