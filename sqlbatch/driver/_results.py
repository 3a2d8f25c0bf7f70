"""Result containers returned by the execution engine."""

from dataclasses import dataclass
from typing import Any, Optional

__all__ = ("ExecuteResult", "QueryResult")


@dataclass(frozen=True)
class ExecuteResult:
    """Outcome of a statement that returns no rows."""

    rows_affected: int = 0
    last_insert_id: Optional[int] = None


@dataclass
class QueryResult:
    """Outcome of a query.

    Attributes:
        data: Mapped rows (a list), a single mapped row (``one=True``), or
            ``None`` for row-count queries and empty single-row queries.
        count: Number of decoded rows; for row-count queries, the count itself.
        from_cache: Whether the result was served without touching the database.
    """

    data: Any = None
    count: int = 0
    from_cache: bool = False
