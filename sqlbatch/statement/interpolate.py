"""Render statement trees into SQL text and ordered bound parameters.

Builders write SQL containing ``?`` markers plus the values for those markers.
The interpolator walks the markers in order and replaces each one:

* nested statements are rendered in place (sub-queries inside parentheses),
* lists and tuples expand to ``(p1, p2, ...)``,
* every literal is bound as a parameter using the dialect's placeholder token.

Rendering is deterministic: the same statement and dialect always produce the
same SQL text and the same parameter order.
"""

import datetime
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

from sqlbatch.exceptions import InterpolationError, SQLBatchError
from sqlbatch.protocols import Buildable
from sqlbatch.statement.buffer import Buffer
from sqlbatch.statement.expr import Identifier, RawExpression

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlbatch.dialects import Dialect

__all__ = ("Interpolator", "RenderedQuery", "count_wrap", "interpolate", "render")

# A quoted literal (skipped) or a bare placeholder.
_PLACEHOLDER_RE: Final = re.compile(r"'(?:[^']|'')*'|\?")

_SCALAR_TYPES: Final = (
    bool,
    int,
    float,
    Decimal,
    str,
    bytes,
    bytearray,
    memoryview,
    datetime.datetime,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
)


@dataclass(frozen=True)
class RenderedQuery:
    """Final SQL text and the parameters bound to its placeholders."""

    sql: str
    parameters: "tuple[Any, ...]"


class Interpolator:
    """Single-use renderer for one statement tree."""

    __slots__ = ("_parameters", "_parts", "dialect")

    def __init__(self, dialect: "Dialect") -> None:
        self.dialect = dialect
        self._parts: list[str] = []
        self._parameters: list[Any] = []

    def encode(self, builder: Buildable) -> None:
        buffer = Buffer()
        builder.build(self.dialect, buffer)
        self._interpolate(buffer.string(), buffer.values())

    def string(self) -> str:
        return "".join(self._parts)

    def parameters(self) -> "tuple[Any, ...]":
        return tuple(self._parameters)

    def _interpolate(self, sql: str, values: "Sequence[Any]") -> None:
        index = 0
        start = 0
        for match in _PLACEHOLDER_RE.finditer(sql):
            if match.group() != "?":
                continue
            self._parts.append(sql[start : match.start()])
            start = match.end()
            if index >= len(values):
                msg = f"wrong placeholder count: {len(values)} value(s) for more placeholders"
                raise InterpolationError(msg, sql)
            self._encode_value(values[index])
            index += 1
        self._parts.append(sql[start:])
        if index != len(values):
            msg = f"wrong placeholder count: {index} placeholder(s) for {len(values)} value(s)"
            raise InterpolationError(msg, sql)

    def _encode_value(self, value: Any) -> None:
        if isinstance(value, (RawExpression, Identifier)):
            self.encode(value)
            return
        if isinstance(value, Buildable):
            self._parts.append("(")
            self.encode(value)
            self._parts.append(")")
            return
        if isinstance(value, (list, tuple)):
            if not value:
                self._parts.append("(NULL)")
                return
            self._parts.append("(")
            for i, item in enumerate(value):
                if i > 0:
                    self._parts.append(", ")
                self._encode_value(item)
            self._parts.append(")")
            return
        if isinstance(value, Enum):
            self._encode_value(value.value)
            return
        if value is None or isinstance(value, _SCALAR_TYPES):
            self._bind(value)
            return
        msg = f"unsupported literal type {type(value).__name__}"
        raise InterpolationError(msg, self.string())

    def _bind(self, value: Any) -> None:
        self._parts.append(self.dialect.placeholder(len(self._parameters)))
        self._parameters.append(value)


def interpolate(builder: Buildable, dialect: "Dialect") -> RenderedQuery:
    """Render ``builder`` for ``dialect``.

    Raises:
        InterpolationError: The statement holds an unsupported literal, an empty
            identifier, or placeholders that do not match its values. A builder
            whose ``build`` fails with a non-sqlbatch exception is reported the
            same way, with the original exception chained.
    """
    interpolator = Interpolator(dialect)
    try:
        interpolator.encode(builder)
    except SQLBatchError:
        raise
    except Exception as e:
        msg = f"{type(builder).__name__}.build failed: {e!r}"
        raise InterpolationError(msg, interpolator.string() or None) from e
    return RenderedQuery(sql=interpolator.string(), parameters=interpolator.parameters())


def render(builder: Buildable, dialect: "Dialect") -> str:
    """Render only the SQL text of ``builder``."""
    return interpolate(builder, dialect).sql


def count_wrap(sql: str) -> str:
    """Wrap a query so it returns its row count."""
    return f"SELECT COUNT(*) FROM ({sql}) AS count"
