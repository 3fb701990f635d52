from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .utils import now_iso


class NodeType(str, Enum):
    """
    Node kinds in the pipeline forest.

    - INPUT: a data file the user created or imported (always a root)
    - TRANSFORM: a user script applied to its parent's artifact
    - OUTPUT: the materialized result of running a transform
    """
    INPUT = "input"
    TRANSFORM = "transform"
    OUTPUT = "output"


class PipelineNode(BaseModel):
    """
    A typed vertex in the session's pipeline forest.

    The node holds no content: filename is the join key to the artifact stored
    under the session directory.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    type: NodeType
    label: str
    filename: str
    parent_id: Optional[str] = Field(default=None, alias="parentId")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SessionMetadata(BaseModel):
    """
    The per-session metadata document (pipeline.json).

    id: chronological session id, doubles as the storage directory name
    created: ISO8601 timestamp
    name: user-facing name (defaults to the id when a session is created)
    nodes: the whole node forest; read and written as one document
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    created: str = Field(default_factory=now_iso)
    name: Optional[str] = None
    nodes: list[PipelineNode] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or "Untitled"

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
