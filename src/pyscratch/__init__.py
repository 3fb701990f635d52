"""pyscratch: scratch data pipelines of input files, Python transforms and their outputs."""

from .errors import (
    ArtifactExists,
    ArtifactNotFound,
    Cancelled,
    CompilationError,
    InvalidNode,
    NoActiveSession,
    ParentNotFound,
    PyScratchError,
    StorageError,
    TransformRuntimeError,
)
from .models import NodeType, PipelineNode, SessionMetadata
from .session import SessionContext
from .store import PipelineStore, descendants_of

__version__ = "0.1.0"

__all__ = [
    "ArtifactExists",
    "ArtifactNotFound",
    "Cancelled",
    "CompilationError",
    "InvalidNode",
    "NoActiveSession",
    "NodeType",
    "ParentNotFound",
    "PipelineNode",
    "PipelineStore",
    "PyScratchError",
    "SessionContext",
    "SessionMetadata",
    "StorageError",
    "TransformRuntimeError",
    "descendants_of",
]
