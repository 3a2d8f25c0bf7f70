from typing import Any, Optional

__all__ = (
    "CacheError",
    "CaseUpdateValueError",
    "ExecutionError",
    "ImproperConfigurationError",
    "InterpolationError",
    "MissingCacheKeyError",
    "MissingColumnsError",
    "MissingDependencyError",
    "MissingTableError",
    "SQLBatchError",
    "SerializationError",
    "TransactionError",
)


class SQLBatchError(Exception):
    """Base exception class from which all sqlbatch exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLBatchError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class MissingDependencyError(SQLBatchError, ImportError):
    """Missing optional dependency.

    This exception is raised only when a module depends on a dependency that has not been installed.
    """

    def __init__(self, package: str, install_package: Optional[str] = None) -> None:
        super().__init__(
            f"Package {package!r} is not installed but required. You can install it by running "
            f"'pip install sqlbatch[{install_package or package}]' to install sqlbatch with the required extra "
            f"or 'pip install {install_package or package}' to install the package separately",
        )


class ImproperConfigurationError(SQLBatchError):
    """A statement or call was configured incorrectly by the caller."""


class MissingTableError(ImproperConfigurationError):
    """No table name was given to a statement that needs one."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or "table not specified")


class MissingColumnsError(ImproperConfigurationError):
    """No columns were given to a statement that needs them."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or "column not specified")


class MissingCacheKeyError(ImproperConfigurationError):
    """Caching was requested without a cache key."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or "cache key can not be empty")


class CaseUpdateValueError(ImproperConfigurationError):
    """A case-update row does not line up with the declared columns."""


class InterpolationError(SQLBatchError):
    """A statement could not be rendered into SQL text and bound values."""

    sql: Optional[str]

    def __init__(self, message: str, sql: Optional[str] = None) -> None:
        detail_message = message
        if sql:
            detail_message = f"{message}\nSQL: {sql}"
        super().__init__(detail=detail_message)
        self.sql = sql


class ExecutionError(SQLBatchError):
    """The driver failed or the call deadline expired."""

    sql: str
    elapsed_ms: int
    timed_out: bool

    def __init__(self, message: str, sql: str, elapsed_ms: int, timed_out: bool = False) -> None:
        label = "timeout" if timed_out else "error"
        super().__init__(detail=f"{message} ({label} after {elapsed_ms}ms)\nSQL: {sql}")
        self.sql = sql
        self.elapsed_ms = elapsed_ms
        self.timed_out = timed_out


class CacheError(SQLBatchError):
    """The cache backend failed. Never fatal to a statement."""


class SerializationError(CacheError):
    """Encoding or decoding of a cache entry failed."""


class TransactionError(SQLBatchError):
    """A transaction was used after it finished."""
