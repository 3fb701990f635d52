"""Transform execution: harness generation, bundling, child-process runs."""

from .compiler import Compiler, ZipappCompiler
from .engine import RunResult, TransformExecutionEngine
from .harness import TransformHarnessBuilder
from .runner import ProcessRunner, SubprocessRunner

__all__ = [
    "Compiler",
    "ProcessRunner",
    "RunResult",
    "SubprocessRunner",
    "TransformExecutionEngine",
    "TransformHarnessBuilder",
    "ZipappCompiler",
]
