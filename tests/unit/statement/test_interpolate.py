"""Unit tests for statement interpolation."""

import datetime
import enum
import uuid
from decimal import Decimal

import pytest

from sqlbatch import MYSQL, POSTGRES, SQLITE, Buffer, I, count_wrap, expr, interpolate, render
from sqlbatch.exceptions import InterpolationError


class Status(enum.Enum):
    ACTIVE = "active"


class SubSelect:
    """Minimal builder that is neither a raw expression nor an identifier."""

    def __init__(self, table, value):
        self.table = table
        self.value = value

    def build(self, dialect, buffer: Buffer) -> None:
        buffer.write_string("SELECT id FROM ")
        buffer.write_string(dialect.quote_ident(self.table))
        buffer.write_string(" WHERE owner = ?")
        buffer.write_value(self.value)


def test_literals_are_bound_in_order():
    rendered = interpolate(expr("SELECT * FROM users WHERE id = ? AND name = ?", 1, "bob"), SQLITE)
    assert rendered.sql == "SELECT * FROM users WHERE id = ? AND name = ?"
    assert rendered.parameters == (1, "bob")


@pytest.mark.parametrize(
    ("dialect", "expected"),
    [
        (SQLITE, "SELECT * FROM t WHERE a = ? AND b IN (?, ?)"),
        (MYSQL, "SELECT * FROM t WHERE a = %s AND b IN (%s, %s)"),
        (POSTGRES, "SELECT * FROM t WHERE a = $1 AND b IN ($2, $3)"),
    ],
)
def test_placeholder_tokens_per_dialect(dialect, expected):
    rendered = interpolate(expr("SELECT * FROM t WHERE a = ? AND b IN ?", "x", [1, 2]), dialect)
    assert rendered.sql == expected
    assert rendered.parameters == ("x", 1, 2)


def test_rendering_is_deterministic():
    statement = expr("SELECT * FROM ? WHERE a IN ? AND b = ?", I("t"), (3, 1, 2), Status.ACTIVE)
    for dialect in (SQLITE, MYSQL, POSTGRES):
        assert interpolate(statement, dialect) == interpolate(statement, dialect)


def test_empty_list_renders_null():
    rendered = interpolate(expr("SELECT * FROM t WHERE id IN ?", []), SQLITE)
    assert rendered.sql == "SELECT * FROM t WHERE id IN (NULL)"
    assert rendered.parameters == ()


def test_nested_list_items_are_expanded():
    rendered = interpolate(expr("SELECT * FROM t WHERE (a, b) IN ?", [(1, 2), (3, 4)]), POSTGRES)
    assert rendered.sql == "SELECT * FROM t WHERE (a, b) IN (($1, $2), ($3, $4))"
    assert rendered.parameters == (1, 2, 3, 4)


def test_identifier_is_quoted_inline():
    rendered = interpolate(expr("SELECT * FROM ? WHERE x = ?", I("users"), 5), SQLITE)
    assert rendered.sql == 'SELECT * FROM "users" WHERE x = ?'
    assert rendered.parameters == (5,)


def test_raw_expression_is_spliced_without_parentheses():
    inner = expr("COALESCE(a, ?)", 0)
    rendered = interpolate(expr("SELECT ? FROM t WHERE b = ?", inner, 1), POSTGRES)
    assert rendered.sql == "SELECT COALESCE(a, $1) FROM t WHERE b = $2"
    assert rendered.parameters == (0, 1)


def test_subquery_is_parenthesised():
    rendered = interpolate(expr("SELECT * FROM docs WHERE folder_id IN ?", SubSelect("folders", 7)), POSTGRES)
    assert rendered.sql == 'SELECT * FROM docs WHERE folder_id IN (SELECT id FROM "folders" WHERE owner = $1)'
    assert rendered.parameters == (7,)


def test_question_mark_inside_string_literal_is_not_a_placeholder():
    rendered = interpolate(expr("SELECT 'why?' AS q, 'it''s ?' AS r, ? AS v", 1), SQLITE)
    assert rendered.sql == "SELECT 'why?' AS q, 'it''s ?' AS r, ? AS v"
    assert rendered.parameters == (1,)


@pytest.mark.parametrize(
    "value",
    [
        None,
        True,
        3.5,
        Decimal("1.10"),
        b"\x00\xff",
        datetime.datetime(2024, 1, 2, 3, 4, 5),
        datetime.date(2024, 1, 2),
        uuid.UUID(int=1),
    ],
)
def test_scalar_values_are_bound_unchanged(value):
    rendered = interpolate(expr("SELECT ?", value), SQLITE)
    assert rendered.sql == "SELECT ?"
    assert rendered.parameters == (value,)


def test_enum_binds_its_value():
    assert interpolate(expr("SELECT ?", Status.ACTIVE), SQLITE).parameters == ("active",)


@pytest.mark.parametrize("value", [{"a": 1}, {1, 2}, object()])
def test_unsupported_literal_type(value):
    with pytest.raises(InterpolationError, match="unsupported literal type"):
        interpolate(expr("SELECT ?", value), SQLITE)


@pytest.mark.parametrize("name", [None, ""])
def test_empty_identifier(name):
    with pytest.raises(InterpolationError, match="identifier name can not be empty"):
        interpolate(expr("SELECT * FROM ?", I(name)), SQLITE)


def test_more_placeholders_than_values():
    with pytest.raises(InterpolationError, match="wrong placeholder count") as exc_info:
        interpolate(expr("SELECT ?, ?", 1), SQLITE)
    assert exc_info.value.sql == "SELECT ?, ?"


def test_more_values_than_placeholders():
    with pytest.raises(InterpolationError, match="wrong placeholder count"):
        interpolate(expr("SELECT ?", 1, 2), SQLITE)


class BrokenBuilder:
    def build(self, dialect, buffer: Buffer) -> None:
        buffer.write_string("SELECT ")
        raise ValueError("no such column")


def test_builder_failure_becomes_interpolation_error():
    with pytest.raises(InterpolationError, match="BrokenBuilder.build failed") as exc_info:
        interpolate(BrokenBuilder(), SQLITE)
    assert isinstance(exc_info.value.__cause__, ValueError)


def test_nested_builder_failure_keeps_rendered_prefix():
    with pytest.raises(InterpolationError) as exc_info:
        interpolate(expr("SELECT * FROM t WHERE id IN ?", BrokenBuilder()), SQLITE)
    assert isinstance(exc_info.value.__cause__, ValueError)
    assert exc_info.value.sql == "SELECT * FROM t WHERE id IN ("


def test_render_returns_sql_only():
    assert render(expr("SELECT * FROM t WHERE id = ?", 1), POSTGRES) == "SELECT * FROM t WHERE id = $1"


def test_count_wrap():
    assert count_wrap("SELECT * FROM t") == "SELECT COUNT(*) FROM (SELECT * FROM t) AS count"


def test_buffer_collects_text_and_values():
    buffer = Buffer()
    buffer.write_string("SELECT ")
    buffer.write_string("?")
    buffer.write_value(1)
    assert buffer.string() == "SELECT ?"
    assert list(buffer.values()) == [1]
