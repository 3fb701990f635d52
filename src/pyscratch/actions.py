"""
User-level pipeline actions: the operations behind the CLI commands.

Each action acts on the active session of the store's SessionContext.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import ArtifactNotFound, InvalidNode
from .models import NodeType, PipelineNode
from .scaffold import render_transform_template
from .store import PipelineStore
from .utils import new_id, safe_filename

logger = logging.getLogger(__name__)


def create_input(store: PipelineStore, filename: str, content: bytes = b"") -> PipelineNode:
    """
    Creates an input file in the active session and registers an input node for it.

    Raises ArtifactExists if the session already holds a file with that name.
    """
    session_id = store.context.require()
    name = safe_filename(filename)
    if not name:
        raise InvalidNode("Input filename cannot be empty.")

    store.write_artifact(session_id, name, content, overwrite=False)
    node = PipelineNode(id=new_id(), type=NodeType.INPUT, label=name, filename=name)
    store.add_node(session_id, node)
    logger.info("created input %s in %s", name, session_id)
    return node


def import_input(store: PipelineStore, source: Path, filename: str | None = None) -> PipelineNode:
    source = Path(source)
    return create_input(store, filename or source.name, source.read_bytes())


def add_transform(store: PipelineStore, parent_id: str) -> PipelineNode:
    """
    Creates transform-<id>.py under `parent_id`, pre-filled with a scaffold that
    documents the shape of the parent's data.
    """
    session_id = store.context.require()
    parent = store.get_node(session_id, parent_id)
    if parent is None:
        raise InvalidNode(f"Node '{parent_id}' not found in session {session_id}.")

    try:
        raw = store.read_artifact(session_id, parent.filename).decode("utf-8", errors="replace")
    except ArtifactNotFound:
        raw = ""

    node_id = new_id()
    filename = f"transform-{node_id}.py"
    script = render_transform_template(parent.label, parent.filename, raw)
    store.write_artifact(session_id, filename, script.encode("utf-8"), overwrite=False)

    node = PipelineNode(
        id=node_id,
        type=NodeType.TRANSFORM,
        label=filename,
        filename=filename,
        parent_id=parent.id,
    )
    store.add_node(session_id, node)
    logger.info("added transform %s under %s", filename, parent.id)
    return node


def export_node(store: PipelineStore, node_id: str, destination: Path) -> Path:
    """
    Copies a node's artifact out of session storage.

    A directory destination receives the file under the node's filename.
    """
    session_id = store.context.require()
    node = store.get_node(session_id, node_id)
    if node is None:
        raise InvalidNode(f"Node '{node_id}' not found in session {session_id}.")

    target = Path(destination)
    if target.is_dir():
        target = target / node.filename
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(store.read_artifact(session_id, node.filename))
    logger.info("exported %s to %s", node.filename, target)
    return target
