"""Diagnostic logging for lsp-proxy.

Uses Python's standard logging module with support for:
- Verbosity levels: error(0), warning(1), info(2), verbose(3), trace(4)
- Stderr output, since stdout carries the protocol stream
- Optional extra log file
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

# Custom log levels
TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

# Module-level logger
logger = logging.getLogger("lsp_proxy")

_initialized = False

# Map --verbose=N to log levels (0=errors only, 4=everything)
_VERBOSITY_MAP = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: VERBOSE,
    4: TRACE,
}


class _LowercaseLevelFormatter(logging.Formatter):
    """Formatter that emits lowercase level names."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def verbosity_to_level(verbose: int) -> int:
    """Translate a verbosity count into a logging level."""
    if verbose < 0:
        return logging.ERROR
    return _VERBOSITY_MAP.get(verbose, TRACE)


def setup_logging(
    verbose: int = 2,
    *,
    log_file: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Initialize diagnostic logging.

    Call this once at startup. Subsequent calls are no-ops.

    Args:
        verbose: Verbosity level, 0 (errors only) to 4 (everything).
        log_file: Optional file that receives a copy of every record.
            Falls back to the LSP_PROXY_LOG environment variable.
        stream: Stream for the console handler (default: sys.stderr).
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    log_level = verbosity_to_level(verbose)
    logger.setLevel(log_level)

    # Format: HH:MM:SS level: message
    formatter = _LowercaseLevelFormatter(
        "%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S"
    )

    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_path = log_file or os.environ.get("LSP_PROXY_LOG")
    if log_path:
        log_path = os.path.expanduser(log_path)
        try:
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to open log file %s: %s", log_path, e)
            return
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def reset_logging() -> None:
    """Remove installed handlers so setup_logging can run again."""
    global _initialized
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    _initialized = False


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Optional name for a child logger (e.g., "channel", "supervisor").
              If None, returns the root lsp_proxy logger.

    Returns:
        A configured logger instance.
    """
    if name:
        return logger.getChild(name)
    return logger
