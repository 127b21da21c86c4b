"""Logging setup for MultiDb.

Loggers live under the ``multidb`` namespace. The engine keeps the name of the running test in a context variable,
so every statement and cleanup action logged during a test can be traced back to the test that caused it.
Statement records also carry the connector, SQL and bound parameters as record attributes, which the JSON
formatter emits as separate keys.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from logging import LogRecord

__all__ = (
    "STATEMENT_FIELDS",
    "CurrentTestFilter",
    "StructuredFormatter",
    "configure_logging",
    "current_test_var",
    "get_current_test",
    "get_logger",
    "set_current_test",
)

current_test_var: ContextVar[str | None] = ContextVar("multidb_current_test", default=None)

STATEMENT_FIELDS: Final[tuple[str, ...]] = ("connector", "sql", "parameters")

TEXT_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(test_name)s] %(message)s"


def set_current_test(name: str | None) -> None:
    """Record the name of the running test, or clear it with ``None``."""
    current_test_var.set(name)


def get_current_test() -> str | None:
    return current_test_var.get()


class CurrentTestFilter(logging.Filter):
    """Attach the running test's name to records as ``test_name``."""

    def filter(self, record: LogRecord) -> bool:
        if not hasattr(record, "test_name"):
            record.test_name = get_current_test() or "-"
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        test_name = getattr(record, "test_name", None) or get_current_test()
        if test_name and test_name != "-":
            entry["test"] = test_name

        for field in STATEMENT_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger under the ``multidb`` namespace.

    Args:
        name: Logger name, with or without the ``multidb.`` prefix. ``None`` returns the package logger.

    Returns:
        The logger, with a :class:`CurrentTestFilter` attached.
    """
    if name is None:
        name = "multidb"
    elif not name.startswith("multidb"):
        name = f"multidb.{name}"

    logger = logging.getLogger(name)
    if not any(isinstance(f, CurrentTestFilter) for f in logger.filters):
        logger.addFilter(CurrentTestFilter())
    return logger


def configure_logging(
    level: str = "INFO", format_style: str = "structured", extra_handlers: list[logging.Handler] | None = None
) -> None:
    """Send MultiDb logs to stdout.

    Args:
        level: Logging level name, case-insensitive.
        format_style: ``"structured"`` for JSON lines, anything else for plain text.
        extra_handlers: Additional handlers for the ``multidb`` logger.
    """
    package_logger = get_logger()
    package_logger.setLevel(getattr(logging, level.upper()))
    package_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(CurrentTestFilter())
    console_handler.setFormatter(StructuredFormatter() if format_style == "structured" else logging.Formatter(TEXT_FORMAT))
    package_logger.addHandler(console_handler)

    for handler in extra_handlers or ():
        package_logger.addHandler(handler)

    package_logger.propagate = False
    package_logger.debug("MultiDb logging configured at %s (%s)", level, format_style)
