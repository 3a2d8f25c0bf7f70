"""Connections, sessions and transactions.

A :class:`Connection` pairs a driver with a dialect and a default event
receiver. Every statement runs in the context of a :class:`Session` (or a
:class:`Transaction` started from one) so instrumentation can tell which unit
of work issued it.
"""

from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, Optional

from mypy_extensions import trait

from sqlbatch.driver import _engine
from sqlbatch.exceptions import TransactionError
from sqlbatch.observability._receiver import NULL_RECEIVER
from sqlbatch.protocols import TracingEventReceiver
from sqlbatch.statement.case_update import CaseUpdateBuilder
from sqlbatch.statement.expr import expr

if TYPE_CHECKING:
    from types import TracebackType

    from sqlbatch.cache import CacheDirective
    from sqlbatch.dialects import Dialect
    from sqlbatch.driver._results import ExecuteResult, QueryResult
    from sqlbatch.observability import ObservabilityConfig
    from sqlbatch.protocols import Buildable, DriverProtocol, EventReceiver

__all__ = ("Connection", "RunnerMixin", "Session", "Transaction")


@trait
class RunnerMixin:
    """Statement entry points shared by sessions and transactions."""

    __slots__ = ()
    driver: "DriverProtocol"
    dialect: "Dialect"
    event_receiver: "EventReceiver"
    timeout: Optional[float]
    _tracer: "Optional[TracingEventReceiver]"

    def get_timeout(self) -> Optional[float]:
        return self.timeout

    def _check_active(self) -> None:
        return None

    async def execute(self, statement: "Buildable", cache: "Optional[CacheDirective]" = None) -> "ExecuteResult":
        """Run a statement that modifies data, invalidating ``cache.key`` on success."""
        self._check_active()
        return await _engine.execute(
            self.driver,
            self.event_receiver,
            self._tracer,
            statement,
            self.dialect,
            timeout=self.timeout,
            cache=cache,
        )

    async def query(
        self,
        statement: "Buildable",
        schema_type: Optional[type] = None,
        *,
        one: bool = False,
        count: bool = False,
        row_mapper: "Optional[Callable[[Mapping[str, Any]], Any]]" = None,
        cache: "Optional[CacheDirective]" = None,
    ) -> "QueryResult":
        """Run a query, reading through ``cache`` when given."""
        self._check_active()
        return await _engine.query(
            self.driver,
            self.event_receiver,
            self._tracer,
            statement,
            self.dialect,
            timeout=self.timeout,
            cache=cache,
            schema_type=schema_type,
            one=one,
            count=count,
            row_mapper=row_mapper,
        )

    async def execute_sql(
        self, sql: str, *values: Any, cache: "Optional[CacheDirective]" = None
    ) -> "ExecuteResult":
        return await self.execute(expr(sql, *values), cache=cache)

    async def query_sql(
        self,
        sql: str,
        *values: Any,
        schema_type: Optional[type] = None,
        one: bool = False,
        count: bool = False,
        row_mapper: "Optional[Callable[[Mapping[str, Any]], Any]]" = None,
        cache: "Optional[CacheDirective]" = None,
    ) -> "QueryResult":
        return await self.query(
            expr(sql, *values), schema_type, one=one, count=count, row_mapper=row_mapper, cache=cache
        )

    def case_update(self, table: str) -> CaseUpdateBuilder:
        """Create a case-update builder bound to this runner."""
        return CaseUpdateBuilder(table, runner=self)


def _resolve_tracer(receiver: "EventReceiver") -> "Optional[TracingEventReceiver]":
    if isinstance(receiver, TracingEventReceiver):
        return receiver
    return None


class Connection:
    """A driver plus the dialect and instrumentation used with it.

    Args:
        driver: Database driver.
        dialect: Dialect used to render statements.
        event_receiver: Default receiver for sessions; the no-op receiver when omitted.
        observability_config: Applied once when the connection is created.
    """

    __slots__ = ("dialect", "driver", "event_receiver")

    def __init__(
        self,
        driver: "DriverProtocol",
        dialect: "Dialect",
        event_receiver: "Optional[EventReceiver]" = None,
        observability_config: "Optional[ObservabilityConfig]" = None,
    ) -> None:
        if observability_config is not None:
            observability_config.apply()
            if event_receiver is None:
                event_receiver = observability_config.event_receiver
        self.driver = driver
        self.dialect = dialect
        self.event_receiver = event_receiver if event_receiver is not None else NULL_RECEIVER

    def new_session(
        self, event_receiver: "Optional[EventReceiver]" = None, timeout: Optional[float] = None
    ) -> "Session":
        """Create a session; ``event_receiver`` defaults to the connection's."""
        return Session(self, event_receiver=event_receiver, timeout=timeout)


class Session(RunnerMixin):
    """Business unit of execution.

    Args:
        connection: Parent connection.
        event_receiver: Receiver for this session; the connection's when omitted.
        timeout: Seconds allowed per statement; ``None`` means unbounded.
    """

    __slots__ = ("_tracer", "connection", "dialect", "driver", "event_receiver", "timeout")

    def __init__(
        self,
        connection: Connection,
        event_receiver: "Optional[EventReceiver]" = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.connection = connection
        self.driver = connection.driver
        self.dialect = connection.dialect
        self.event_receiver = event_receiver if event_receiver is not None else connection.event_receiver
        self.timeout = timeout
        self._tracer = _resolve_tracer(self.event_receiver)

    async def begin(self) -> "Transaction":
        """Start a transaction on the session's driver."""
        try:
            await self.driver.begin()
        except Exception as e:
            self.event_receiver.event_err("sqlbatch.begin.error", e)
            msg = f"failed to begin transaction: {e}"
            raise TransactionError(msg) from e
        self.event_receiver.event("sqlbatch.begin")
        return Transaction(self)

    @asynccontextmanager
    async def transaction(self) -> "AsyncIterator[Transaction]":
        """Run a block in a transaction: commit on success, roll back on error."""
        async with await self.begin() as tx:
            yield tx


class Transaction(RunnerMixin):
    """A transaction started by :meth:`Session.begin`.

    Usable as an async context manager that commits when the block succeeds and
    rolls back when it raises.
    """

    __slots__ = ("_finished", "_tracer", "dialect", "driver", "event_receiver", "session", "timeout")

    def __init__(self, session: Session) -> None:
        self.session = session
        self.driver = session.driver
        self.dialect = session.dialect
        self.event_receiver = session.event_receiver
        self.timeout = session.timeout
        self._tracer = session._tracer  # noqa: SLF001
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def _check_active(self) -> None:
        if self._finished:
            msg = "transaction has already been committed or rolled back"
            raise TransactionError(msg)

    async def commit(self) -> None:
        self._check_active()
        try:
            await self.driver.commit()
        except Exception as e:
            self.event_receiver.event_err("sqlbatch.commit.error", e)
            msg = f"failed to commit transaction: {e}"
            raise TransactionError(msg) from e
        finally:
            self._finished = True
        self.event_receiver.event("sqlbatch.commit")

    async def rollback(self) -> None:
        self._check_active()
        try:
            await self.driver.rollback()
        except Exception as e:
            self.event_receiver.event_err("sqlbatch.rollback.error", e)
            msg = f"failed to roll back transaction: {e}"
            raise TransactionError(msg) from e
        finally:
            self._finished = True
        self.event_receiver.event("sqlbatch.rollback")

    async def rollback_unless_committed(self) -> None:
        """Roll back unless the transaction already finished. Meant for ``finally`` blocks."""
        if not self._finished:
            await self.rollback()

    async def __aenter__(self) -> "Transaction":
        return self

    async def __aexit__(
        self,
        exc_type: "Optional[type[BaseException]]",
        exc_val: "Optional[BaseException]",
        exc_tb: "Optional[TracebackType]",
    ) -> None:
        if self._finished:
            return
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()
