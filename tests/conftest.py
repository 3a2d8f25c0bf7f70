from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import pytest

from sqlbatch import SQLITE, Connection, MemoryCacheBackend
from sqlbatch.driver import ExecuteResult
from sqlbatch.observability import show_sql

COUNT_PREFIX = "SELECT COUNT(*) FROM ("


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_show_sql() -> Any:
    yield
    show_sql(0)


class RecordingReceiver:
    """Event receiver that keeps everything it is told."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, str]]] = []
        self.errors: list[tuple[str, BaseException, dict[str, str]]] = []
        self.timings: list[tuple[str, int, dict[str, str]]] = []

    def event(self, event_name: str) -> None:
        self.events.append((event_name, {}))

    def event_kv(self, event_name: str, kvs: Mapping[str, str]) -> None:
        self.events.append((event_name, dict(kvs)))

    def event_err(self, event_name: str, err: BaseException) -> BaseException:
        self.errors.append((event_name, err, {}))
        return err

    def event_err_kv(self, event_name: str, err: BaseException, kvs: Mapping[str, str]) -> BaseException:
        self.errors.append((event_name, err, dict(kvs)))
        return err

    def timing(self, event_name: str, nanoseconds: int) -> None:
        self.timings.append((event_name, nanoseconds, {}))

    def timing_kv(self, event_name: str, nanoseconds: int, kvs: Mapping[str, str]) -> None:
        self.timings.append((event_name, nanoseconds, dict(kvs)))

    @property
    def error_names(self) -> list[str]:
        return [name for name, _, _ in self.errors]

    @property
    def timing_names(self) -> list[str]:
        return [name for name, _, _ in self.timings]

    @property
    def event_names(self) -> list[str]:
        return [name for name, _ in self.events]


class TracingReceiver(RecordingReceiver):
    """Recording receiver that also implements the tracing extension."""

    def __init__(self) -> None:
        super().__init__()
        self.spans: list[dict[str, Any]] = []

    def span_start(self, event_name: str, sql: str) -> dict[str, Any]:
        span: dict[str, Any] = {"name": event_name, "sql": sql, "error": None, "finished": False}
        self.spans.append(span)
        return span

    def span_error(self, span: dict[str, Any], err: BaseException) -> None:
        span["error"] = err

    def span_finish(self, span: dict[str, Any]) -> None:
        span["finished"] = True


class FakeRows:
    def __init__(self, column_names: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        self.column_names = list(column_names)
        self._rows = [tuple(row) for row in rows]
        self.closed = False

    def __aiter__(self) -> Any:
        return self._iterate()

    async def _iterate(self) -> Any:
        for row in self._rows:
            yield row

    async def close(self) -> None:
        self.closed = True


class FakeDriver:
    """Driver double recording every statement it receives.

    Args:
        columns: Column names returned by ``query``.
        rows: Rows returned by ``query``.
        delay: Seconds to sleep before answering.
        fail_on_call: 1-based call number that raises ``error``; ``0`` fails every call.
    """

    def __init__(
        self,
        columns: Sequence[str] = ("id", "name"),
        rows: Sequence[Sequence[Any]] = ((1, "alice"), (2, "bob")),
        *,
        rows_affected: int = 1,
        delay: float = 0.0,
        fail_on_call: int | None = None,
        error: Exception | None = None,
    ) -> None:
        self.columns = list(columns)
        self.rows = [tuple(row) for row in rows]
        self.rows_affected = rows_affected
        self.delay = delay
        self.fail_on_call = fail_on_call
        self.error = error or RuntimeError("driver exploded")
        self.executed: list[tuple[str, tuple[Any, ...]]] = []
        self.queries: list[tuple[str, tuple[Any, ...]]] = []
        self.opened: list[FakeRows] = []
        self.transaction_calls: list[str] = []
        self.calls = 0

    async def _answer(self) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on_call is not None and self.fail_on_call in {0, self.calls}:
            raise self.error

    async def execute(self, sql: str, parameters: Sequence[Any]) -> ExecuteResult:
        self.executed.append((sql, tuple(parameters)))
        await self._answer()
        return ExecuteResult(rows_affected=self.rows_affected)

    async def query(self, sql: str, parameters: Sequence[Any]) -> FakeRows:
        self.queries.append((sql, tuple(parameters)))
        await self._answer()
        if sql.startswith(COUNT_PREFIX):
            rows = FakeRows(["count"], [(len(self.rows),)])
        else:
            rows = FakeRows(self.columns, self.rows)
        self.opened.append(rows)
        return rows

    async def begin(self) -> None:
        self.transaction_calls.append("begin")

    async def commit(self) -> None:
        self.transaction_calls.append("commit")

    async def rollback(self) -> None:
        self.transaction_calls.append("rollback")


class FailingCacheBackend:
    """Cache backend whose every operation fails."""

    def __init__(self, error: Callable[[], Exception] = lambda: ConnectionError("cache down")) -> None:
        self._error = error
        self.calls: list[str] = []

    async def set(self, key: str, data: bytes, ttl: int | None = None) -> None:
        self.calls.append("set")
        raise self._error()

    async def get_bytes(self, key: str) -> tuple[bytes | None, bool]:
        self.calls.append("get")
        raise self._error()

    async def delete(self, key: str) -> None:
        self.calls.append("delete")
        raise self._error()


@pytest.fixture
def receiver() -> RecordingReceiver:
    return RecordingReceiver()


@pytest.fixture
def tracing_receiver() -> TracingReceiver:
    return TracingReceiver()


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def memory_cache() -> MemoryCacheBackend:
    return MemoryCacheBackend()


@pytest.fixture
def failing_cache() -> FailingCacheBackend:
    return FailingCacheBackend()


@pytest.fixture
def connection(driver: FakeDriver, receiver: RecordingReceiver) -> Connection:
    return Connection(driver, SQLITE, event_receiver=receiver)


@pytest.fixture
def session(connection: Connection) -> Any:
    return connection.new_session()
