"""Batched ``UPDATE ... SET col = CASE pk WHEN ... END`` statements.

One statement updates many rows: every column gets a ``CASE`` expression keyed
on the primary key and the ``WHERE`` clause restricts the update to the keys
in the current window::

    UPDATE "users" SET "name" = CASE "id" WHEN ? THEN ? WHEN ? THEN ? END,
        "visits" = "visits" + CASE "id" WHEN ? THEN ? WHEN ? THEN ? END
    WHERE "id" IN (?, ?)

Rows are consumed in windows of ``batch_size``; :meth:`CaseUpdateBuilder.exec`
keeps executing windows until no row is pending. Windows already applied are
not rolled back when a later one fails.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final, Optional

from typing_extensions import Self

from sqlbatch.exceptions import (
    CaseUpdateValueError,
    ImproperConfigurationError,
    InterpolationError,
    MissingColumnsError,
    MissingTableError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from sqlbatch.dialects import Dialect
    from sqlbatch.driver._results import ExecuteResult
    from sqlbatch.driver._session import RunnerMixin
    from sqlbatch.statement.buffer import Buffer

__all__ = ("DEFAULT_BATCH_SIZE", "CaseUpdateBuilder", "CaseUpdateRow", "case_update")

DEFAULT_BATCH_SIZE: Final = 1000

_INCREMENT_OPERATORS: Final = ("+", "-")


@dataclass(frozen=True)
class CaseUpdateRow:
    """Values for one primary key, in column order."""

    key: str
    pk: Any
    values: "tuple[Any, ...]"


def _split_column(column: str) -> "tuple[str, Optional[str]]":
    if column and column[-1] in _INCREMENT_OPERATORS:
        return column[:-1], column[-1]
    return column, None


class CaseUpdateBuilder:
    """Builder for windowed CASE updates.

    A column name ending in ``+`` or ``-`` adds to (subtracts from) the current
    value instead of replacing it. Adding a primary key that is still pending
    replaces its values.

    A builder only keeps its pending rows and is not safe for concurrent
    ``exec`` calls.

    Example:
        ```python
        await (
            session.case_update("accounts")
            .columns("id", "status", "balance+")
            .values(1, "active", 10)
            .values(2, "closed", -5)
            .set_batch_size(500)
            .exec()
        )
        ```
    """

    __slots__ = (
        "_column_names",
        "_consumed",
        "_index",
        "_rows",
        "batch_size",
        "pk_column",
        "returning_columns",
        "runner",
        "table",
    )

    def __init__(self, table: str, runner: "Optional[RunnerMixin]" = None) -> None:
        self.table = table
        self.runner = runner
        self.pk_column = ""
        self.batch_size: Optional[int] = None
        self.returning_columns: tuple[str, ...] = ()
        self._column_names: tuple[str, ...] = ()
        self._rows: list[CaseUpdateRow] = []
        # pending key -> absolute position; the row lives at ``position - _consumed``
        self._index: dict[str, int] = {}
        self._consumed = 0

    @property
    def column_names(self) -> "tuple[str, ...]":
        return self._column_names

    @property
    def pending(self) -> "tuple[CaseUpdateRow, ...]":
        """Rows not yet handed to the database."""
        return tuple(self._rows)

    @property
    def pending_count(self) -> int:
        return len(self._rows)

    def bind(self, runner: "RunnerMixin") -> Self:
        self.runner = runner
        return self

    def columns(self, pk_column: str, *columns: str) -> Self:
        """Set the primary key column and the columns to update."""
        self.pk_column = pk_column
        self._column_names = tuple(columns)
        return self

    def values(self, pk: Any, *values: Any) -> Self:
        """Add the values for one primary key, in column order."""
        key = str(pk)
        row = CaseUpdateRow(key=key, pk=pk, values=tuple(values))
        position = self._index.get(key)
        if position is not None:
            self._rows[position - self._consumed] = row
            return self
        self._index[key] = self._consumed + len(self._rows)
        self._rows.append(row)
        return self

    def set_batch_size(self, size: Optional[int]) -> Self:
        """Rows per statement. ``None`` restores the default, ``0`` sends every pending row at once."""
        if size is not None and size < 0:
            msg = f"batch size must be >= 0, got {size}"
            raise ValueError(msg)
        self.batch_size = size
        return self

    set_run_len = set_batch_size

    def returning(self, *columns: str) -> Self:
        self.returning_columns = tuple(columns)
        return self

    def window_size(self) -> int:
        """Number of rows the next statement will consume."""
        size = DEFAULT_BATCH_SIZE if self.batch_size is None else self.batch_size
        if size == 0:
            return len(self._rows)
        return min(size, len(self._rows))

    def _window(self) -> "list[CaseUpdateRow]":
        if not self.table:
            raise MissingTableError
        if not self.pk_column or not self._column_names:
            raise MissingColumnsError
        for column in self._column_names:
            if not _split_column(column)[0]:
                msg = f"invalid column name {column!r}"
                raise MissingColumnsError(msg)

        window = self._rows[: self.window_size()]
        if not window:
            msg = "no rows to update"
            raise CaseUpdateValueError(msg)
        expected = len(self._column_names)
        for row in window:
            if len(row.values) != expected:
                msg = f"row {row.key!r} has {len(row.values)} value(s) for {expected} column(s)"
                raise CaseUpdateValueError(msg)
        return window

    def _consume(self, size: int) -> None:
        for row in self._rows[:size]:
            del self._index[row.key]
        del self._rows[:size]
        self._consumed += size

    def build(self, dialect: "Dialect", buffer: "Buffer") -> None:
        """Render the current window. Pending rows are left untouched."""
        window = self._window()

        pk = dialect.quote_ident(self.pk_column)
        buffer.write_string("UPDATE ")
        buffer.write_string(dialect.quote_ident(self.table))
        buffer.write_string(" SET ")
        for i, column in enumerate(self._column_names):
            if i > 0:
                buffer.write_string(", ")
            name, operator = _split_column(column)
            quoted = dialect.quote_ident(name)
            if operator:
                buffer.write_string(f"{quoted} = {quoted} {operator} ")
            else:
                buffer.write_string(f"{quoted} = ")
            buffer.write_string(f"CASE {pk}")
            for row in window:
                buffer.write_string(" WHEN ? THEN ?")
                buffer.write_value(row.pk, row.values[i])
            buffer.write_string(" END")

        buffer.write_string(f" WHERE {pk} IN (")
        buffer.write_string(", ".join("?" for _ in window))
        buffer.write_string(")")
        buffer.write_value(*(row.pk for row in window))

        if self.returning_columns:
            buffer.write_string(" RETURNING ")
            buffer.write_string(", ".join(dialect.quote_ident(column) for column in self.returning_columns))

    def _require_runner(self) -> "RunnerMixin":
        if self.runner is None:
            msg = "case update is not bound to a session; create it with Session.case_update()"
            raise ImproperConfigurationError(msg)
        return self.runner

    async def _run_window(self, size: int, call: "Awaitable[Any]") -> Any:
        consumed = True
        try:
            return await call
        except (InterpolationError, ImproperConfigurationError):
            # raised while rendering, before the driver saw the statement
            consumed = False
            raise
        finally:
            if consumed:
                self._consume(size)

    async def exec_once(self) -> "ExecuteResult":
        """Execute one window.

        Configuration and rendering errors leave the window pending. Any other
        outcome (success, driver error, timeout, cancellation) consumes it, so
        no window is ever applied twice.
        """
        runner = self._require_runner()
        result: ExecuteResult = await self._run_window(self.window_size(), runner.execute(self))
        return result

    async def exec(self) -> int:
        """Execute windows until no row is pending; return the total rows affected."""
        total = 0
        while self._rows:
            result = await self.exec_once()
            total += result.rows_affected
        return total

    async def load(self, schema_type: Optional[type] = None) -> "list[Any]":
        """Execute every window through the query path and collect ``RETURNING`` rows."""
        from sqlbatch.driver._mapping import get_row_mapper

        runner = self._require_runner()
        if schema_type is not None:
            # reject an unsupported shape before any window is applied
            get_row_mapper(schema_type, ())
        rows: list[Any] = []
        while self._rows:
            result = await self._run_window(self.window_size(), runner.query(self, schema_type))
            rows.extend(result.data or ())
        return rows


def case_update(table: str) -> CaseUpdateBuilder:
    """Create an unbound case-update builder."""
    return CaseUpdateBuilder(table)
