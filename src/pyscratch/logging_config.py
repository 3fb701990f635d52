"""
Logging setup for the pyscratch CLI.

Library modules only create loggers under the 'pyscratch' namespace; handlers are
installed here, once, by the command-line entry point.
"""

from __future__ import annotations

import logging
import sys

from .settings import log_level

LOGGER_NAME = "pyscratch"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(verbose: bool = False) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else log_level())

    # Re-configuring (e.g. repeated CLI invocations in one test process) replaces our handler.
    logger.handlers = [h for h in logger.handlers if not getattr(h, "_pyscratch", False)]

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._pyscratch = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False
    return logger
