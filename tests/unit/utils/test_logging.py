"""Tests for the logging helpers."""

import json
import logging

import pytest

from sqlbatch.utils.logging import (
    CorrelationIDFilter,
    StructuredFormatter,
    configure_logging,
    get_correlation_id,
    get_logger,
    log_with_context,
    set_correlation_id,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger("sqlbatch")
    handlers, level, propagate = list(root.handlers), root.level, root.propagate
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    root.propagate = propagate


@pytest.fixture(autouse=True)
def _clear_correlation_id():
    yield
    set_correlation_id(None)


def _record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord("sqlbatch.test", logging.INFO, __file__, 10, message, (), None)


def test_get_logger_namespaces_names():
    assert get_logger().name == "sqlbatch"
    assert get_logger("driver").name == "sqlbatch.driver"
    assert get_logger("sqlbatch.events").name == "sqlbatch.events"


def test_get_logger_adds_one_correlation_filter():
    logger = get_logger("filters")
    get_logger("filters")
    assert sum(isinstance(f, CorrelationIDFilter) for f in logger.filters) == 1


def test_structured_formatter_includes_correlation_id():
    set_correlation_id("req-1")
    assert get_correlation_id() == "req-1"

    payload = json.loads(StructuredFormatter().format(_record()))

    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "sqlbatch.test"
    assert payload["correlation_id"] == "req-1"


def test_structured_formatter_extra_fields():
    record = _record()
    record.extra_fields = {"sql": "SELECT 1", "rows": 2}

    payload = json.loads(StructuredFormatter().format(record))

    assert payload["sql"] == "SELECT 1"
    assert payload["rows"] == 2


def test_structured_formatter_lifts_statement_fields():
    record = _record("sqlbatch.exec.cache.del: cache down")
    record.event = "sqlbatch.exec.cache.del"
    record.sql = "DELETE FROM t"

    payload = json.loads(StructuredFormatter().format(record))

    assert payload["event"] == "sqlbatch.exec.cache.del"
    assert payload["sql"] == "DELETE FROM t"
    assert "correlation_id" not in payload


def test_correlation_filter_sets_attribute():
    set_correlation_id("abc")
    record = _record()
    assert CorrelationIDFilter().filter(record) is True
    assert record.correlation_id == "abc"


def test_configure_logging_installs_handlers(restore_root_logger, tmp_path):
    extra = logging.NullHandler()
    configure_logging(level="debug", format_style="simple", log_to_file=str(tmp_path / "sqlbatch.log"), extra_handlers=[extra])

    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert root.propagate is False
    assert extra in root.handlers
    assert len(root.handlers) == 3
    assert isinstance(root.handlers[1].formatter, StructuredFormatter)
    for handler in root.handlers[:2]:
        handler.close()


def test_log_with_context(restore_root_logger):
    captured: list[logging.LogRecord] = []

    class ListHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            captured.append(record)

    logger = get_logger("context")
    handler = ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    try:
        log_with_context(logger, logging.INFO, "cache miss", key="users")
        log_with_context(logger, logging.DEBUG, "ignored")
    finally:
        logger.removeHandler(handler)

    assert [record.getMessage() for record in captured] == ["cache miss"]
    assert captured[0].extra_fields == {"key": "users"}
