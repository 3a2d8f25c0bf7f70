"""Configuration objects for statement observability."""

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from sqlbatch.protocols import EventReceiver

__all__ = ("SHOW_SQL_ENV_VAR", "ObservabilityConfig", "get_show_sql_level", "show_sql")

SHOW_SQL_ENV_VAR: Final = "SQLBATCH_SHOW_SQL"

SHOW_NOTHING: Final = 0
SHOW_ERRORS: Final = 1
SHOW_ALL: Final = 2


def _level_from_env() -> int:
    raw = os.environ.get(SHOW_SQL_ENV_VAR, "").strip()
    if not raw.isdigit():
        return SHOW_NOTHING
    return min(int(raw), SHOW_ALL)


_show_sql_level: int = _level_from_env()


def show_sql(level: int) -> None:
    """Set how much the default event receiver reports.

    Args:
        level: 0 reports nothing, 1 reports errors, 2 reports errors and every
            successful statement.
    """
    global _show_sql_level  # noqa: PLW0603
    if level < SHOW_NOTHING or level > SHOW_ALL:
        msg = f"show_sql level must be between {SHOW_NOTHING} and {SHOW_ALL}, got {level}"
        raise ValueError(msg)
    _show_sql_level = level


def get_show_sql_level() -> int:
    return _show_sql_level


@dataclass(slots=True)
class ObservabilityConfig:
    """Instrumentation settings applied when a connection is created."""

    event_receiver: "EventReceiver | None" = None
    show_sql_level: "int | None" = None

    def apply(self) -> None:
        """Push the configured verbosity to the process-wide switch."""
        if self.show_sql_level is not None:
            show_sql(self.show_sql_level)
