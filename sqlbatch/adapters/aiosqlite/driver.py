"""AIOSQLite driver.

Outside an explicit transaction every statement is committed as soon as it
completes, so a session behaves like an autocommit connection.
"""

import contextlib
import datetime
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from decimal import Decimal
from typing import Any, Final, Optional

import aiosqlite

from sqlbatch.dialects import SQLITE, Dialect
from sqlbatch.driver._results import ExecuteResult

__all__ = ("AiosqliteDriver", "AiosqliteRows", "coerce_parameter")

_TYPE_COERCION_MAP: "Final[dict[type, Callable[[Any], Any]]]" = {
    bool: int,
    datetime.datetime: lambda v: v.isoformat(),
    datetime.date: lambda v: v.isoformat(),
    datetime.time: lambda v: v.isoformat(),
    datetime.timedelta: lambda v: v.total_seconds(),
    Decimal: str,
    uuid.UUID: str,
    bytearray: bytes,
    memoryview: bytes,
}


def coerce_parameter(value: Any) -> Any:
    """Convert a bound value to a type sqlite3 accepts natively."""
    converter = _TYPE_COERCION_MAP.get(type(value))
    if converter is None:
        return value
    return converter(value)


class AiosqliteRows:
    """Row cursor over an ``aiosqlite.Cursor``."""

    __slots__ = ("_cursor", "_on_close", "column_names")

    def __init__(
        self, cursor: "aiosqlite.Cursor", on_close: "Optional[Callable[[], Awaitable[None]]]" = None
    ) -> None:
        self._cursor = cursor
        self._on_close = on_close
        self.column_names = [column[0] for column in cursor.description or ()]

    def __aiter__(self) -> "AsyncIterator[tuple[Any, ...]]":
        return self._iterate()

    async def _iterate(self) -> "AsyncIterator[tuple[Any, ...]]":
        async for row in self._cursor:
            yield tuple(row)

    async def close(self) -> None:
        with contextlib.suppress(aiosqlite.ProgrammingError):
            await self._cursor.close()
        if self._on_close is not None:
            await self._on_close()


class AiosqliteDriver:
    """Driver over a single ``aiosqlite`` connection."""

    __slots__ = ("_explicit_transaction", "connection")
    dialect: Dialect = SQLITE

    def __init__(self, connection: "aiosqlite.Connection") -> None:
        self.connection = connection
        self._explicit_transaction = False

    @staticmethod
    def _prepare(parameters: "Sequence[Any]") -> "tuple[Any, ...]":
        return tuple(coerce_parameter(value) for value in parameters)

    async def _autocommit(self) -> None:
        if not self._explicit_transaction and self.connection.in_transaction:
            await self.connection.commit()

    async def execute(self, sql: str, parameters: "Sequence[Any]") -> ExecuteResult:
        cursor = await self.connection.execute(sql, self._prepare(parameters))
        try:
            rows_affected = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
            last_insert_id = cursor.lastrowid
        finally:
            await cursor.close()
        await self._autocommit()
        return ExecuteResult(rows_affected=rows_affected, last_insert_id=last_insert_id)

    async def query(self, sql: str, parameters: "Sequence[Any]") -> AiosqliteRows:
        cursor = await self.connection.execute(sql, self._prepare(parameters))
        return AiosqliteRows(cursor, on_close=self._autocommit)

    async def begin(self) -> None:
        if not self.connection.in_transaction:
            await self.connection.execute("BEGIN")
        self._explicit_transaction = True

    async def commit(self) -> None:
        try:
            await self.connection.commit()
        finally:
            self._explicit_transaction = False

    async def rollback(self) -> None:
        try:
            await self.connection.rollback()
        finally:
            self._explicit_transaction = False
