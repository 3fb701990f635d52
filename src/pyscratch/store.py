"""
PipelineStore: the per-session node forest and its backing files.

Every mutation reads the whole pipeline.json document, changes it in memory and
writes it back. There is no locking: two writers racing on the same session can
lose an update (last write wins).
"""

from __future__ import annotations

import json
import logging
from collections import deque
from typing import Iterable, Optional

from pydantic import ValidationError

from .artifacts import ArtifactStore
from .errors import ArtifactNotFound, InvalidNode, StorageError
from .events import SessionEvents
from .models import NodeType, PipelineNode, SessionMetadata
from .paths import artifact_key, metadata_key, session_key
from .session import SessionContext
from .utils import dumps_json, new_session_id, sort_key_iso

logger = logging.getLogger(__name__)


def descendants_of(nodes: Iterable[PipelineNode], root_id: str) -> set[str]:
    """
    Ids of root_id and every node reachable from it through parentId edges.

    Breadth-first over a child index; the result always contains root_id.
    """
    children: dict[str, list[str]] = {}
    for n in nodes:
        if n.parent_id is not None:
            children.setdefault(n.parent_id, []).append(n.id)

    found = {root_id}
    queue = deque([root_id])
    while queue:
        current = queue.popleft()
        for child in children.get(current, ()):
            if child not in found:
                found.add(child)
                queue.append(child)
    return found


def validate_new_node(session: SessionMetadata, node: PipelineNode) -> None:
    """Raise InvalidNode if appending `node` would break the forest invariants."""
    by_id = {n.id: n for n in session.nodes}
    if node.id in by_id:
        raise InvalidNode(f"Node id '{node.id}' already exists in session {session.id}.")
    if any(n.filename == node.filename for n in session.nodes):
        raise InvalidNode(f"Filename '{node.filename}' is already used in session {session.id}.")

    if node.type == NodeType.INPUT:
        if node.parent_id is not None:
            raise InvalidNode("Input nodes cannot have a parent.")
        return

    if node.parent_id is None:
        raise InvalidNode(f"A {node.type.value} node requires a parent.")
    parent = by_id.get(node.parent_id)
    if parent is None:
        raise InvalidNode(f"Parent node '{node.parent_id}' does not exist.")

    if node.type == NodeType.OUTPUT:
        if parent.type != NodeType.TRANSFORM:
            raise InvalidNode("Output nodes must be parented to a transform node.")
        if any(n.type == NodeType.OUTPUT and n.parent_id == parent.id for n in session.nodes):
            raise InvalidNode(f"Transform '{parent.id}' already has an output node.")


class PipelineStore:
    """Graph operations over session metadata documents, built on an ArtifactStore."""

    def __init__(self, artifacts: ArtifactStore, context: Optional[SessionContext] = None) -> None:
        self.artifacts = artifacts
        self.context = context or SessionContext()

    @property
    def events(self) -> SessionEvents:
        return self.context.events

    # ---- sessions ----

    def create_session(self, name: Optional[str] = None) -> str:
        session_id = new_session_id()
        self.artifacts.create_dir(session_key(session_id))

        metadata = SessionMetadata(id=session_id, name=name or session_id, nodes=[])
        self.save_metadata(session_id, metadata)
        logger.info("created session %s (%s)", session_id, metadata.name)

        self.context.activate(session_id)
        return session_id

    def list_sessions(self) -> list[SessionMetadata]:
        """
        All sessions found under the storage root, newest first.

        Directories whose pipeline.json is missing or does not parse are skipped.
        """
        try:
            entries = self.artifacts.list("")
        except ArtifactNotFound:
            return []

        sessions: list[SessionMetadata] = []
        for name, is_dir in entries:
            if not is_dir:
                continue
            try:
                sessions.append(self._load_metadata(name))
            except (StorageError, ValueError, ValidationError):
                logger.debug("skipping %s: not a readable session", name)
                continue

        return sorted(sessions, key=lambda s: sort_key_iso(s.created), reverse=True)

    def delete_session(self, session_id: str) -> None:
        self.artifacts.delete(session_key(session_id), recursive=True)
        logger.info("deleted session %s", session_id)

        if self.context.active_session_id == session_id:
            self.context.clear()
        else:
            self.events.fire(session_id)

    def clear_history(self) -> int:
        sessions = self.list_sessions()
        for s in sessions:
            self.delete_session(s.id)
        return len(sessions)

    # ---- metadata document ----

    def _load_metadata(self, session_id: str) -> SessionMetadata:
        raw = self.artifacts.read(metadata_key(session_id))
        return SessionMetadata.model_validate(json.loads(raw.decode("utf-8")))

    def get_metadata(self, session_id: str) -> SessionMetadata:
        """
        Loads pipeline.json for a session.

        Missing or unreadable documents yield an empty session with that id rather
        than an error.
        """
        try:
            return self._load_metadata(session_id)
        except (StorageError, ValueError, ValidationError) as e:
            logger.debug("metadata for %s unavailable (%s); using empty session", session_id, e)
            return SessionMetadata(id=session_id, nodes=[])

    def save_metadata(self, session_id: str, metadata: SessionMetadata) -> None:
        self.artifacts.write(metadata_key(session_id), dumps_json(metadata.to_json()))
        self.events.fire(session_id)

    # ---- nodes ----

    def add_node(self, session_id: str, node: PipelineNode) -> None:
        metadata = self.get_metadata(session_id)
        validate_new_node(metadata, node)
        metadata.nodes.append(node)
        self.save_metadata(session_id, metadata)
        logger.debug("added %s node %s (%s) to %s", node.type.value, node.id, node.filename, session_id)

    def get_node(self, session_id: str, node_id: str) -> Optional[PipelineNode]:
        metadata = self.get_metadata(session_id)
        return next((n for n in metadata.nodes if n.id == node_id), None)

    def find_node_by_filename(self, session_id: str, filename: str) -> Optional[PipelineNode]:
        metadata = self.get_metadata(session_id)
        return next((n for n in metadata.nodes if n.filename == filename), None)

    def find_output_for(self, session_id: str, transform_id: str) -> Optional[PipelineNode]:
        metadata = self.get_metadata(session_id)
        return next(
            (n for n in metadata.nodes if n.type == NodeType.OUTPUT and n.parent_id == transform_id),
            None,
        )

    def roots(self, session_id: str) -> list[PipelineNode]:
        return [n for n in self.get_metadata(session_id).nodes if n.parent_id is None]

    def children_of(self, session_id: str, node_id: str) -> list[PipelineNode]:
        return [n for n in self.get_metadata(session_id).nodes if n.parent_id == node_id]

    def delete_node(self, session_id: str, node_id: str) -> set[str]:
        """
        Deletes a node together with all of its descendants, graph entries and
        backing files alike. Returns the ids that were removed.
        """
        metadata = self.get_metadata(session_id)
        if not any(n.id == node_id for n in metadata.nodes):
            raise InvalidNode(f"Node '{node_id}' not found in session {session_id}.")

        doomed = descendants_of(metadata.nodes, node_id)
        for n in metadata.nodes:
            if n.id not in doomed:
                continue
            try:
                self.artifacts.delete(artifact_key(session_id, n.filename))
            except ArtifactNotFound:
                pass

        metadata.nodes = [n for n in metadata.nodes if n.id not in doomed]
        self.save_metadata(session_id, metadata)
        logger.info("deleted %d node(s) from %s starting at %s", len(doomed), session_id, node_id)
        return doomed

    # ---- artifacts ----

    def artifact_path(self, session_id: str, filename: str) -> str:
        return artifact_key(session_id, filename)

    def read_artifact(self, session_id: str, filename: str) -> bytes:
        return self.artifacts.read(artifact_key(session_id, filename))

    def write_artifact(
        self, session_id: str, filename: str, data: bytes, *, create: bool = True, overwrite: bool = True
    ) -> None:
        self.artifacts.write(artifact_key(session_id, filename), data, create=create, overwrite=overwrite)
