"""Logging helpers for sqlbatch.

Every logger lives under the ``sqlbatch`` namespace. Statement events carry
``event`` and ``sql`` attributes (set through ``extra=``) which the
structured formatter lifts into the JSON document, next to the correlation
id of the unit of work that issued the statement.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Final

from msgspec import json as msgspec_json

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = (
    "CorrelationIDFilter",
    "StructuredFormatter",
    "configure_logging",
    "correlation_id_var",
    "get_correlation_id",
    "get_logger",
    "log_with_context",
    "set_correlation_id",
)

ROOT_LOGGER_NAME: Final = "sqlbatch"

# Attributes callers attach with ``extra=`` that belong in structured output.
_STATEMENT_FIELDS: Final = ("event", "sql")

correlation_id_var: ContextVar[str | None] = ContextVar("sqlbatch_correlation_id", default=None)

_json_encoder = msgspec_json.Encoder(enc_hook=str)


def set_correlation_id(correlation_id: str | None) -> None:
    """Tag statements issued from the current context with ``correlation_id``."""
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


class CorrelationIDFilter(logging.Filter):
    """Copies the context's correlation id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: PLR6301
        correlation_id = get_correlation_id()
        if correlation_id is not None:
            record.correlation_id = correlation_id  # type: ignore[attr-defined]
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON document per record.

    ``extra_fields`` (see :func:`log_with_context`) are merged last and win
    over the standard keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        document: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _STATEMENT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                document[field] = value
        correlation_id = getattr(record, "correlation_id", None) or get_correlation_id()
        if correlation_id is not None:
            document["correlation_id"] = correlation_id
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        document.update(getattr(record, "extra_fields", None) or {})
        return _json_encoder.encode(document).decode("utf-8")


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``sqlbatch`` or a logger below it.

    ``get_logger("driver")`` and ``get_logger("sqlbatch.driver")`` name the same
    logger.
    """
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(name)
    if not any(isinstance(existing, CorrelationIDFilter) for existing in logger.filters):
        logger.addFilter(CorrelationIDFilter())
    return logger


def configure_logging(
    level: str | int = "INFO",
    format_style: str = "structured",
    log_to_file: str | None = None,
    extra_handlers: Iterable[logging.Handler] | None = None,
) -> logging.Logger:
    """Route sqlbatch records to stdout (and optionally a file).

    Replaces any handlers previously installed on the ``sqlbatch`` logger and
    stops propagation to the root logger.

    Args:
        level: Level name or number.
        format_style: ``"structured"`` for JSON lines, anything else for plain text.
        log_to_file: Path of a file receiving JSON lines as well.
        extra_handlers: Handlers appended as-is.

    Returns:
        The configured ``sqlbatch`` logger.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    if format_style == "structured":
        console.setFormatter(StructuredFormatter())
    else:
        console.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root.addHandler(console)

    if log_to_file:
        file_handler = logging.FileHandler(log_to_file)
        file_handler.setFormatter(StructuredFormatter())
        root.addHandler(file_handler)

    for handler in extra_handlers or ():
        root.addHandler(handler)

    root.propagate = False
    root.debug("logging configured", extra={"extra_fields": {"format_style": format_style}})
    return root


def log_with_context(logger: logging.Logger, level: int, message: str, **extra_fields: Any) -> None:
    """Log ``message`` with ``extra_fields`` merged into structured output."""
    if logger.isEnabledFor(level):
        logger.log(level, message, extra={"extra_fields": extra_fields})
