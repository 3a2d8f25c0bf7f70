"""Public observability exports."""

from sqlbatch.observability._config import ObservabilityConfig, get_show_sql_level, show_sql
from sqlbatch.observability._receiver import NULL_RECEIVER, NullEventReceiver
from sqlbatch.observability._tracing import OpenTelemetryEventReceiver
from sqlbatch.protocols import EventReceiver, TracingEventReceiver

__all__ = (
    "NULL_RECEIVER",
    "EventReceiver",
    "NullEventReceiver",
    "ObservabilityConfig",
    "OpenTelemetryEventReceiver",
    "TracingEventReceiver",
    "get_show_sql_level",
    "show_sql",
)
