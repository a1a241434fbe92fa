from __future__ import annotations

import logging
import sys
from typing import Optional


ROOT_LOGGER = "taskgraph_engine"
DEFAULT_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def configure_logging(level: str = "WARNING", format_string: Optional[str] = None) -> logging.Logger:
    """Install a single stderr handler on the package logger.

    Safe to call repeatedly; earlier handlers are replaced. stdout stays
    reserved for command output.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    logger.addHandler(handler)
    return logger
