"""Statement execution engine.

``execute`` and ``query`` run one statement end to end: interpolation, the
optional cache round trip, the driver round trip and result materialization.
Every step that can suspend is bounded by the same per-call deadline.

Fatal errors (bad statements, driver failures, timeouts) are reported to the
event receiver once and raised. Cache failures of any kind are reported and
logged, then ignored: the database path always decides the outcome.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from sqlbatch.driver._mapping import cache_entry_type, make_row_mapper
from sqlbatch.driver._results import ExecuteResult, QueryResult
from sqlbatch.exceptions import (
    CacheError,
    ExecutionError,
    ImproperConfigurationError,
    MissingCacheKeyError,
    SerializationError,
    SQLBatchError,
)
from sqlbatch.statement.interpolate import RenderedQuery, count_wrap, interpolate, render
from sqlbatch.utils.logging import get_logger
from sqlbatch.utils.serializers import decode_cache_entry, encode_cache_entry

if TYPE_CHECKING:
    from sqlbatch.cache import CacheDirective
    from sqlbatch.dialects import Dialect
    from sqlbatch.protocols import Buildable, DriverProtocol, EventReceiver, RowCursor, TracingEventReceiver

__all__ = ("Deadline", "execute", "query")

logger = get_logger("sqlbatch.driver")

T = TypeVar("T")


class Deadline:
    """Absolute deadline shared by every round trip of one call.

    A timeout of ``None`` or ``0`` means unbounded.
    """

    __slots__ = ("expires_at",)

    def __init__(self, timeout: Optional[float] = None) -> None:
        self.expires_at = time.monotonic() + timeout if timeout else None

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return self.expires_at - time.monotonic()

    async def run(self, awaitable: "Awaitable[T]") -> T:
        remaining = self.remaining()
        if remaining is None:
            return await awaitable
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise asyncio.TimeoutError
        return await asyncio.wait_for(awaitable, timeout=remaining)


def _elapsed_ms(start_ns: int) -> int:
    return (time.perf_counter_ns() - start_ns) // 1_000_000


def _kvs(sql: str, start_ns: int) -> "dict[str, str]":
    return {"sql": sql, "time": str(_elapsed_ms(start_ns))}


def _render(
    receiver: "EventReceiver", event_name: str, builder: "Buildable", dialect: "Dialect"
) -> RenderedQuery:
    try:
        return interpolate(builder, dialect)
    except SQLBatchError as e:
        receiver.event_err_kv(event_name, e, {"sql": getattr(e, "sql", None) or "", "args": ""})
        raise


def _execution_failed(
    receiver: "EventReceiver",
    tracer: "Optional[TracingEventReceiver]",
    span: Any,
    event_name: str,
    sql: str,
    start_ns: int,
    cause: BaseException,
    timed_out: bool,
) -> ExecutionError:
    if tracer is not None:
        tracer.span_error(span, cause)
    message = "statement timed out" if timed_out else f"statement failed: {cause}"
    error = ExecutionError(message, sql=sql, elapsed_ms=_elapsed_ms(start_ns), timed_out=timed_out)
    receiver.event_err_kv(event_name, error, _kvs(sql, start_ns))
    return error


def _cache_failed(receiver: "EventReceiver", event_name: str, cause: BaseException, sql: str, start_ns: int) -> None:
    error = cause if isinstance(cause, CacheError) else CacheError(f"cache backend failed: {cause!r}")
    if error is not cause:
        error.__cause__ = cause
    receiver.event_err_kv(event_name, error, _kvs(sql, start_ns))
    logger.warning("%s: %s", event_name, error, extra={"sql": sql})


async def execute(
    driver: "DriverProtocol",
    receiver: "EventReceiver",
    tracer: "Optional[TracingEventReceiver]",
    builder: "Buildable",
    dialect: "Dialect",
    *,
    timeout: Optional[float] = None,
    cache: "Optional[CacheDirective]" = None,
) -> ExecuteResult:
    """Run a statement that modifies data.

    When ``cache`` carries a key, that key is deleted after the write succeeds.

    Raises:
        InterpolationError: The statement could not be rendered.
        ImproperConfigurationError: The statement is missing required parts.
        ExecutionError: The driver failed or the deadline expired.
    """
    deadline = Deadline(timeout)
    rendered = _render(receiver, "sqlbatch.exec.interpolate", builder, dialect)

    start_ns = time.perf_counter_ns()
    span = tracer.span_start("sqlbatch.exec", rendered.sql) if tracer is not None else None
    try:
        result = await deadline.run(driver.execute(rendered.sql, rendered.parameters))
    except asyncio.TimeoutError as e:
        raise _execution_failed(
            receiver, tracer, span, "sqlbatch.exec.exec", rendered.sql, start_ns, e, timed_out=True
        ) from e
    except Exception as e:
        raise _execution_failed(
            receiver, tracer, span, "sqlbatch.exec.exec", rendered.sql, start_ns, e, timed_out=False
        ) from e
    finally:
        if tracer is not None:
            tracer.span_finish(span)

    if cache is not None and cache.enabled and cache.key:
        try:
            await deadline.run(cache.backend.delete(cache.key))
        except Exception as e:  # noqa: BLE001
            _cache_failed(receiver, "sqlbatch.exec.cache.del", e, rendered.sql, start_ns)

    receiver.timing_kv("sqlbatch.exec", time.perf_counter_ns() - start_ns, {"sql": rendered.sql})
    return result


async def _scan_count(cursor: "RowCursor") -> QueryResult:
    async for row in cursor:
        return QueryResult(data=None, count=int(row[0]))
    return QueryResult(data=None, count=0)


async def _load_rows(
    cursor: "RowCursor",
    schema_type: Optional[type],
    one: bool,
    row_mapper: "Optional[Callable[[Mapping[str, Any]], Any]]",
) -> QueryResult:
    mapper = make_row_mapper(cursor.column_names, schema_type, row_mapper)
    if one:
        async for row in cursor:
            return QueryResult(data=mapper(row), count=1)
        return QueryResult(data=None, count=0)
    rows = [mapper(row) async for row in cursor]
    return QueryResult(data=rows, count=len(rows))


def _map_rows(
    raw: QueryResult,
    schema_type: Optional[type],
    one: bool,
    row_mapper: "Optional[Callable[[Mapping[str, Any]], Any]]",
) -> QueryResult:
    """Map column-name rows, as stored in the cache, into the requested shape."""
    rows: list[dict[str, Any]] = ([] if raw.data is None else [raw.data]) if one else raw.data
    mapper = make_row_mapper(tuple(rows[0]) if rows else (), schema_type, row_mapper)
    mapped = [mapper(tuple(row.values())) for row in rows]
    if one:
        return QueryResult(data=mapped[0] if mapped else None, count=len(mapped), from_cache=raw.from_cache)
    return QueryResult(data=mapped, count=len(mapped), from_cache=raw.from_cache)


async def _read_cache(
    receiver: "EventReceiver",
    deadline: Deadline,
    cache: "CacheDirective",
    sql: str,
    start_ns: int,
    *,
    wants_count: bool,
    one: bool,
) -> Optional[QueryResult]:
    try:
        data, found = await deadline.run(cache.backend.get_bytes(cache.key))
    except Exception as e:  # noqa: BLE001
        _cache_failed(receiver, "sqlbatch.select.cache.get", e, sql, start_ns)
        return None
    if not found or data is None:
        return None

    try:
        if wants_count:
            return QueryResult(data=None, count=decode_cache_entry(data, int), from_cache=True)
        decoded = decode_cache_entry(data, cache_entry_type(one=one))
        if not one and not isinstance(decoded, list):
            msg = f"cached entry holds {type(decoded).__name__}, expected a list of rows"
            raise SerializationError(msg)
    except SerializationError as e:
        _cache_failed(receiver, "sqlbatch.select.cache.decode", e, sql, start_ns)
        return None

    if one:
        return QueryResult(data=decoded, count=0 if decoded is None else 1, from_cache=True)
    return QueryResult(data=decoded, count=len(decoded), from_cache=True)


async def _write_cache(
    receiver: "EventReceiver",
    deadline: Deadline,
    cache: "CacheDirective",
    result: QueryResult,
    sql: str,
    start_ns: int,
    *,
    wants_count: bool,
) -> None:
    try:
        payload = encode_cache_entry(result.count if wants_count else result.data)
    except SerializationError as e:
        _cache_failed(receiver, "sqlbatch.select.cache.encode", e, sql, start_ns)
        return
    try:
        await deadline.run(cache.backend.set(cache.key, payload, cache.ttl))
    except Exception as e:  # noqa: BLE001
        _cache_failed(receiver, "sqlbatch.select.cache.set", e, sql, start_ns)


async def query(
    driver: "DriverProtocol",
    receiver: "EventReceiver",
    tracer: "Optional[TracingEventReceiver]",
    builder: "Buildable",
    dialect: "Dialect",
    *,
    timeout: Optional[float] = None,
    cache: "Optional[CacheDirective]" = None,
    schema_type: Optional[type] = None,
    one: bool = False,
    count: bool = False,
    row_mapper: "Optional[Callable[[Mapping[str, Any]], Any]]" = None,
) -> QueryResult:
    """Run a query, reading through the cache when ``cache`` is enabled.

    Args:
        driver: Database driver.
        receiver: Event receiver for errors and timings.
        tracer: Tracing receiver resolved by the session, if any.
        builder: Statement to run.
        dialect: Dialect used for rendering.
        timeout: Seconds allowed for the whole call.
        cache: Cache directive; ``cache.count`` behaves like ``count``.
        schema_type: Shape of each row (dict, dataclass, msgspec Struct, scalar).
        one: Keep only the first row.
        count: Return the row count of the statement instead of its rows.
        row_mapper: Explicit row mapping function; overrides ``schema_type``.

    Raises:
        InterpolationError: The statement could not be rendered.
        MissingCacheKeyError: Caching is enabled without a key.
        ImproperConfigurationError: ``schema_type`` is not supported.
        ExecutionError: The driver failed, a row could not be mapped, or the deadline expired.
    """
    deadline = Deadline(timeout)
    start_ns = time.perf_counter_ns()
    caching = cache is not None and cache.enabled
    wants_count = count or (cache is not None and cache.count)

    if caching and cache is not None:
        try:
            sql = render(builder, dialect)
        except SQLBatchError as e:
            receiver.event_err_kv("sqlbatch.select.cache.render", e, _kvs(getattr(e, "sql", None) or "", start_ns))
            raise
        if wants_count:
            sql = count_wrap(sql)
        if not cache.key:
            error = MissingCacheKeyError()
            receiver.event_err_kv("sqlbatch.select.cache.key", error, _kvs(sql, start_ns))
            raise error

        cached = await _read_cache(receiver, deadline, cache, sql, start_ns, wants_count=wants_count, one=one)
        if cached is not None:
            if not wants_count:
                try:
                    cached = _map_rows(cached, schema_type, one, row_mapper)
                except ImproperConfigurationError as e:
                    receiver.event_err_kv("sqlbatch.select.load.scan", e, _kvs(sql, start_ns))
                    raise
                except Exception as e:
                    raise _execution_failed(
                        receiver, None, None, "sqlbatch.select.load.scan", sql, start_ns, e, timed_out=False
                    ) from e
            receiver.timing_kv("sqlbatch.select.cache", time.perf_counter_ns() - start_ns, {"sql": sql})
            return cached

    rendered = _render(receiver, "sqlbatch.select.interpolate", builder, dialect)
    sql = count_wrap(rendered.sql) if wants_count else rendered.sql

    span = tracer.span_start("sqlbatch.select", sql) if tracer is not None else None
    try:
        cursor = await deadline.run(driver.query(sql, rendered.parameters))
        try:
            if wants_count:
                result = stored = await deadline.run(_scan_count(cursor))
            elif caching:
                # the cache keeps column-name rows; mapping runs on every read
                stored = await deadline.run(_load_rows(cursor, None, one, None))
                result = _map_rows(stored, schema_type, one, row_mapper)
            else:
                result = stored = await deadline.run(_load_rows(cursor, schema_type, one, row_mapper))
        finally:
            await cursor.close()
    except ImproperConfigurationError as e:
        if tracer is not None:
            tracer.span_error(span, e)
        receiver.event_err_kv("sqlbatch.select.load.scan", e, _kvs(sql, start_ns))
        raise
    except asyncio.TimeoutError as e:
        raise _execution_failed(
            receiver, tracer, span, "sqlbatch.select.load.query", sql, start_ns, e, timed_out=True
        ) from e
    except Exception as e:
        raise _execution_failed(
            receiver, tracer, span, "sqlbatch.select.load.query", sql, start_ns, e, timed_out=False
        ) from e
    finally:
        if tracer is not None:
            tracer.span_finish(span)

    if caching and cache is not None:
        await _write_cache(receiver, deadline, cache, stored, sql, start_ns, wants_count=wants_count)

    receiver.timing_kv("sqlbatch.select", time.perf_counter_ns() - start_ns, {"sql": sql})
    return result
