"""
Logging setup shared by the server, the lifecycle manager and the CLI.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: str = "INFO", stream=None) -> logging.Logger:
    """
    Configure the root logger once and return the package logger.

    uvicorn is started with ``log_config=None`` so its loggers propagate
    here as well.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(h, "_linker", False) for h in root.handlers):
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._linker = True
        root.addHandler(handler)
    return get_logger()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the ``linker`` namespace"""
    return logging.getLogger(f"linker.{name}" if name else "linker")
