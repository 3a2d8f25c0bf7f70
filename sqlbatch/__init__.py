"""sqlbatch: composable SQL statements, instrumented execution and read-through caching."""

from sqlbatch import exceptions
from sqlbatch.cache import CacheBackend, CacheDirective, MemoryCacheBackend, make_cache_key
from sqlbatch.dialects import MYSQL, POSTGRES, SQLITE, Dialect, get_dialect
from sqlbatch.driver import Connection, ExecuteResult, QueryResult, Session, Transaction
from sqlbatch.observability import (
    EventReceiver,
    NullEventReceiver,
    ObservabilityConfig,
    TracingEventReceiver,
    get_show_sql_level,
    show_sql,
)
from sqlbatch.protocols import Buildable, DriverProtocol, RowCursor
from sqlbatch.statement import (
    Buffer,
    CaseUpdateBuilder,
    I,
    RenderedQuery,
    case_update,
    count_wrap,
    expr,
    interpolate,
    render,
)

__all__ = (
    "MYSQL",
    "POSTGRES",
    "SQLITE",
    "Buffer",
    "Buildable",
    "CacheBackend",
    "CacheDirective",
    "CaseUpdateBuilder",
    "Connection",
    "Dialect",
    "DriverProtocol",
    "EventReceiver",
    "ExecuteResult",
    "I",
    "MemoryCacheBackend",
    "NullEventReceiver",
    "ObservabilityConfig",
    "QueryResult",
    "RenderedQuery",
    "RowCursor",
    "Session",
    "TracingEventReceiver",
    "Transaction",
    "case_update",
    "count_wrap",
    "exceptions",
    "expr",
    "get_dialect",
    "get_show_sql_level",
    "interpolate",
    "make_cache_key",
    "render",
    "show_sql",
)
