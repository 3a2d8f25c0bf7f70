"""OpenTelemetry tracing receiver."""

from typing import Any, Optional

from sqlbatch.exceptions import MissingDependencyError
from sqlbatch.observability._receiver import NullEventReceiver

__all__ = ("OpenTelemetryEventReceiver",)


class OpenTelemetryEventReceiver(NullEventReceiver):
    """Event receiver that also opens one span per database round trip.

    Args:
        tracer: Tracer to use; defaults to ``trace.get_tracer("sqlbatch")``.
        db_system: Value of the ``db.system`` span attribute.
    """

    __slots__ = ("_status_code", "_tracer", "db_system")

    def __init__(self, tracer: Optional[Any] = None, db_system: str = "other_sql") -> None:
        try:
            from opentelemetry import trace
            from opentelemetry.trace import StatusCode
        except ImportError as e:
            raise MissingDependencyError(package="opentelemetry", install_package="opentelemetry") from e

        self._tracer = tracer if tracer is not None else trace.get_tracer("sqlbatch")
        self._status_code = StatusCode
        self.db_system = db_system

    def span_start(self, event_name: str, sql: str) -> Any:
        span = self._tracer.start_span(event_name)
        span.set_attribute("db.system", self.db_system)
        span.set_attribute("db.statement", sql)
        return span

    def span_error(self, span: Any, err: BaseException) -> None:
        span.record_exception(err)
        span.set_status(self._status_code.ERROR, str(err))

    def span_finish(self, span: Any) -> None:
        span.end()
