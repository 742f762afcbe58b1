"""Logging for seabox.

Two channels:
- rich consoles carry user-facing output (dry-run lines, listings)
- the `seabox` logger carries diagnostics (runtime commands, resolution passes)

Verbosity is decided once, here. `SEABOX_DEBUG` or `--verbose` switches the
logger to DEBUG, and the same switch makes the in-container entry script
chatty (see `is_verbose`).

Usage:
    from seabox.logging import get_logger, log_command
    logger = get_logger(__name__)
    log_command(logger, argv)
"""

from __future__ import annotations

import logging
import os
import shlex
import sys
from collections.abc import Sequence

from .constants import DEBUG_ENV_VAR, SEABOX_NAME, TRUE_VALUES

_loggers: dict[str, logging.Logger] = {}
_initialized = False

LOG_FORMAT = "seabox: %(levelname)s: %(message)s"
LOG_FORMAT_DEBUG = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def _get_log_level() -> int:
    """DEBUG when SEABOX_DEBUG holds a true boolish value, else WARNING."""
    if os.environ.get(DEBUG_ENV_VAR, "").strip().lower() in TRUE_VALUES:
        return logging.DEBUG
    return logging.WARNING


def _formatter(debug: bool) -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT_DEBUG if debug else LOG_FORMAT, datefmt=DATE_FORMAT)


def _init_logging() -> None:
    """Attach the stderr handler to the seabox namespace (once)."""
    global _initialized
    if _initialized:
        return

    level = _get_log_level()
    root_logger = logging.getLogger(SEABOX_NAME)
    root_logger.setLevel(level)

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(_formatter(level == logging.DEBUG))
        root_logger.addHandler(handler)

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, placed under the seabox namespace."""
    _init_logging()

    if not name.startswith(SEABOX_NAME):
        name = f"{SEABOX_NAME}.{name}"

    if name not in _loggers:
        _loggers[name] = logging.getLogger(name)

    return _loggers[name]


def set_debug(enabled: bool = True) -> None:
    """Switch the seabox namespace between DEBUG and WARNING.

    Called by the CLI for --verbose.
    """
    _init_logging()
    level = logging.DEBUG if enabled else logging.WARNING
    root_logger = logging.getLogger(SEABOX_NAME)
    root_logger.setLevel(level)

    for handler in root_logger.handlers:
        handler.setLevel(level)
        handler.setFormatter(_formatter(enabled))


def is_verbose() -> bool:
    """Whether debug output is on, from --verbose or SEABOX_DEBUG.

    Also drives the entry script's own progress messages.
    """
    _init_logging()
    return logging.getLogger(SEABOX_NAME).isEnabledFor(logging.DEBUG)


def log_command(logger: logging.Logger, argv: Sequence[str], action: str = "Running") -> None:
    """Log a runtime command as a shell-quoted line at DEBUG."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("%s: %s", action, shlex.join(argv))
