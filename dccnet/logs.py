"""Small leveled logger writing ``LEVEL: message`` lines."""

from __future__ import annotations

import logging
import sys
from enum import IntEnum
from typing import TextIO

_ROOT_NAME = "dccnet"
_FORMAT = "%(levelname)s: %(message)s"


class LogLevel(IntEnum):
    """Log levels; messages below the configured level are dropped."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    DISABLED = logging.CRITICAL + 10


_root = logging.getLogger(_ROOT_NAME)
_root.addHandler(logging.NullHandler())
_root.propagate = False
_root.setLevel(LogLevel.DISABLED)
_handler: logging.Handler | None = None


def configure(level: LogLevel = LogLevel.ERROR, stream: TextIO | None = None) -> None:
    """Set the threshold level and the stream (stderr by default) for all loggers."""
    global _handler
    if _handler is not None:
        _root.removeHandler(_handler)
    _handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    _handler.setFormatter(logging.Formatter(_FORMAT))
    _root.addHandler(_handler)
    _root.setLevel(int(level))


def get_logger(name: str = "") -> logging.Logger:
    """Return the package logger, or a named child of it."""
    return logging.getLogger(f"{_ROOT_NAME}.{name}" if name else _ROOT_NAME)