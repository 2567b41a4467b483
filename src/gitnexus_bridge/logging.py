"""Logging setup for gitnexus-bridge.

Everything logs under the "gitnexus_bridge" logger. Output goes to the file
named by logging.file or GNB_LOG. Without a file, records go to stderr only
when stderr is a terminal: an agent host usually owns our stdio pipes and
must not see log noise there.

Verbosity 0-4 maps to error, warning, info, verbose, trace.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitnexus_bridge.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("gitnexus_bridge")

_VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

_NAMED_LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_FORMAT = "%(asctime)s %(levelname)s: %(message)s"
_DATE_FORMAT = "%H:%M:%S"

_configured = False


class _LowercaseLevelFormatter(logging.Formatter):
    """`12:00:01 warning: ...` rather than `WARNING`."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        # Copy so other handlers still see the original level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = record.levelname.lower()
        return super().formatMessage(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Numeric level from config. verbose wins over level; INFO by default."""
    if config is not None and config.verbose is not None:
        index = min(max(config.verbose, 0), len(_VERBOSITY_LEVELS) - 1)
        return _VERBOSITY_LEVELS[index]
    if config is not None and config.level:
        return _NAMED_LEVELS.get(config.level.upper(), logging.INFO)
    return logging.INFO


def _attach(handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(_LowercaseLevelFormatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the package logger. Only the first call has any effect."""
    global _configured
    if _configured:
        return
    _configured = True

    level = resolve_level(config)
    logger.setLevel(level)
    interactive = sys.stderr.isatty()

    log_file = (config.file if config else None) or os.environ.get("GNB_LOG")
    if log_file:
        try:
            handler = logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8")
        except OSError as e:
            if interactive:
                print(f"[gitnexus-bridge] cannot open log file {log_file}: {e}", file=sys.stderr)
                _attach(logging.StreamHandler(sys.stderr), level)
            return
        _attach(handler, level)
    elif interactive:
        _attach(logging.StreamHandler(sys.stderr), level)


def get_logger(name: str | None = None) -> logging.Logger:
    """Package logger, or a child of it ("rpc" -> gitnexus_bridge.rpc)."""
    return logger.getChild(name) if name else logger
