"""
Logging helpers for ethlite.

Thin layer over the standard library ``logging`` module:
- every module logs through ``get_logger(__name__)`` under the ``ethlite`` namespace
- the package installs a NullHandler, so nothing is printed unless the
  application calls ``configure_logging()`` or configures logging itself
- ``LogContext`` attaches fields (tx hash, nonce, chain id) to every record
  emitted inside a ``with`` block

Example:
    >>> from ethlite.utils.logging import configure_logging, LogContext, get_logger
    >>> configure_logging("DEBUG")
    >>> log = get_logger("ethlite.example")
    >>> with LogContext(chain_id=84532):
    ...     log.info("connected")
"""

from __future__ import annotations

import contextvars
import logging
import sys
from typing import Any, Dict, Optional, TextIO, Union

ROOT_LOGGER_NAME = "ethlite"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s%(context)s"

_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "ethlite_log_context", default={}
)

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


class _ContextFilter(logging.Filter):
    """Copies LogContext fields onto each record and renders them as a suffix."""

    def filter(self, record: logging.LogRecord) -> bool:
        fields = _context.get()
        for key, value in fields.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        record.context = (
            " [" + " ".join(f"{k}={v}" for k, v in fields.items()) + "]" if fields else ""
        )
        return True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger inside the ethlite namespace.

    Args:
        name: Usually ``__name__``. Names outside ``ethlite`` are nested under it.

    Returns:
        Configured ``logging.Logger``
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(name)
    if not any(isinstance(f, _ContextFilter) for f in logger.filters):
        logger.addFilter(_ContextFilter())
    return logger


def configure_logging(
    level: Union[int, str] = "INFO",
    fmt: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Attach a stream handler to the ethlite root logger.

    Calling it again replaces the previously installed handler.

    Args:
        level: Log level name or number
        fmt: Format string (default includes LogContext fields)
        stream: Output stream (default stderr)

    Returns:
        The ethlite root logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if getattr(handler, "_ethlite_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    handler.addFilter(_ContextFilter())
    handler._ethlite_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
    return root


def set_level(level: Union[int, str]) -> None:
    """Set the level of the ethlite root logger."""
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)


def disable_logging() -> None:
    """Silence every ethlite logger."""
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.CRITICAL + 1)


def enable_debug() -> logging.Logger:
    """Shortcut for ``configure_logging("DEBUG")``."""
    return configure_logging(logging.DEBUG)


class LogContext:
    """
    Context manager adding fields to every ethlite log record in scope.

    Contexts nest; inner fields override outer ones. Works across ``await``
    points because it is backed by a ``contextvars.ContextVar``.
    """

    def __init__(self, **fields: Any) -> None:
        self._fields = fields
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> "LogContext":
        self._token = _context.set({**_context.get(), **self._fields})
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._token is not None:
            _context.reset(self._token)
            self._token = None
