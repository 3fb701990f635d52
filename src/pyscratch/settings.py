from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional


def storage_home() -> Path:
    """
    Root directory holding one subdirectory per session.

    PYSCRATCH_HOME overrides the default of ./.pyscratch under the working directory.
    """
    raw = os.environ.get("PYSCRATCH_HOME")
    if raw is None or raw.strip() == "":
        return Path.cwd() / ".pyscratch"
    return Path(raw).expanduser()


def python_executable() -> str:
    """Interpreter used to run compiled transforms."""
    raw = os.environ.get("PYSCRATCH_PYTHON")
    if raw is None or raw.strip() == "":
        return sys.executable
    return raw.strip()


def run_timeout(default: Optional[float] = None) -> Optional[float]:
    raw = os.environ.get("PYSCRATCH_RUN_TIMEOUT")
    if raw is None or raw.strip() == "":
        return default
    try:
        v = float(raw)
        return v if v > 0 else default
    except ValueError:
        return default


def log_level(default: int = logging.WARNING) -> int:
    raw = os.environ.get("PYSCRATCH_LOG_LEVEL")
    if raw is None or raw.strip() == "":
        return default
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else default
