"""Runtime-checkable protocols for the capabilities sqlbatch consumes.

Statements, drivers, cache backends and event receivers are supplied by the
caller; these protocols describe what the execution engine expects of them.
"""

from collections.abc import AsyncIterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlbatch.dialects import Dialect
    from sqlbatch.driver._results import ExecuteResult
    from sqlbatch.statement.buffer import Buffer

__all__ = (
    "Buildable",
    "CacheBackend",
    "DriverProtocol",
    "EventReceiver",
    "RowCursor",
    "TracingEventReceiver",
)


@runtime_checkable
class Buildable(Protocol):
    """A statement fragment that renders itself and its bound values."""

    def build(self, dialect: "Dialect", buffer: "Buffer") -> None:
        """Write SQL text with ``?`` placeholders and the matching values to ``buffer``."""
        ...


@runtime_checkable
class RowCursor(Protocol):
    """Rows returned by a driver query."""

    @property
    def column_names(self) -> "list[str]":
        """Names of the result columns, in order."""
        ...

    def __aiter__(self) -> "AsyncIterator[Sequence[Any]]":
        """Iterate over result rows."""
        ...

    async def close(self) -> None:
        """Release the cursor."""
        ...


@runtime_checkable
class DriverProtocol(Protocol):
    """Database driver capability used by the execution engine."""

    async def execute(self, sql: str, parameters: "Sequence[Any]") -> "ExecuteResult":
        """Run a statement that returns no rows."""
        ...

    async def query(self, sql: str, parameters: "Sequence[Any]") -> RowCursor:
        """Run a statement that returns rows."""
        ...

    async def begin(self) -> None:
        """Begin a transaction."""
        ...

    async def commit(self) -> None:
        """Commit the current transaction."""
        ...

    async def rollback(self) -> None:
        """Roll back the current transaction."""
        ...


@runtime_checkable
class CacheBackend(Protocol):
    """Key-value store for opaque byte blobs with a time to live."""

    async def set(self, key: str, data: bytes, ttl: "Optional[int]" = None) -> None:
        """Store ``data`` under ``key`` for ``ttl`` seconds (forever when ``None``)."""
        ...

    async def get_bytes(self, key: str) -> "tuple[Optional[bytes], bool]":
        """Return ``(data, found)`` for ``key``."""
        ...

    async def delete(self, key: str) -> None:
        """Remove ``key``; removing a missing key is not an error."""
        ...


@runtime_checkable
class EventReceiver(Protocol):
    """Receives events, errors and timings from statement execution."""

    def event(self, event_name: str) -> None: ...

    def event_kv(self, event_name: str, kvs: "Mapping[str, str]") -> None: ...

    def event_err(self, event_name: str, err: BaseException) -> BaseException: ...

    def event_err_kv(self, event_name: str, err: BaseException, kvs: "Mapping[str, str]") -> BaseException: ...

    def timing(self, event_name: str, nanoseconds: int) -> None: ...

    def timing_kv(self, event_name: str, nanoseconds: int, kvs: "Mapping[str, str]") -> None: ...


@runtime_checkable
class TracingEventReceiver(Protocol):
    """Optional extension an event receiver may implement to trace round trips."""

    def span_start(self, event_name: str, sql: str) -> Any:
        """Open a span and return a handle passed to the other span methods."""
        ...

    def span_error(self, span: Any, err: BaseException) -> None: ...

    def span_finish(self, span: Any) -> None: ...
