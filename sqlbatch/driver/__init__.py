from sqlbatch.driver._engine import Deadline, execute, query
from sqlbatch.driver._mapping import get_row_mapper
from sqlbatch.driver._results import ExecuteResult, QueryResult
from sqlbatch.driver._session import Connection, RunnerMixin, Session, Transaction

__all__ = (
    "Connection",
    "Deadline",
    "ExecuteResult",
    "QueryResult",
    "RunnerMixin",
    "Session",
    "Transaction",
    "execute",
    "get_row_mapper",
    "query",
)
