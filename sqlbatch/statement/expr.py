"""Raw SQL and identifier fragments."""

from typing import TYPE_CHECKING, Any, Optional

from sqlbatch.exceptions import InterpolationError

if TYPE_CHECKING:
    from sqlbatch.dialects import Dialect
    from sqlbatch.statement.buffer import Buffer

__all__ = ("I", "Identifier", "RawExpression", "expr")


class RawExpression:
    """SQL text with ``?`` placeholders and the values bound to them.

    Nested fragments are allowed as values and are spliced in place of their
    placeholder when the statement is interpolated::

        expr("SELECT * FROM users WHERE id IN ?", [1, 2, 3])
        expr("SELECT * FROM ? WHERE name = ?", I("users"), "alice")
    """

    __slots__ = ("sql", "values")

    def __init__(self, sql: str, *values: Any) -> None:
        self.sql = sql
        self.values = values

    def build(self, dialect: "Dialect", buffer: "Buffer") -> None:
        buffer.write_string(self.sql)
        buffer.write_value(*self.values)

    def __repr__(self) -> str:
        return f"RawExpression({self.sql!r}, {len(self.values)} value(s))"


class Identifier:
    """A table or column name, quoted for the target dialect."""

    __slots__ = ("name",)

    def __init__(self, name: "Optional[str]") -> None:
        self.name = name

    def build(self, dialect: "Dialect", buffer: "Buffer") -> None:
        if not self.name:
            msg = "identifier name can not be empty"
            raise InterpolationError(msg)
        buffer.write_string(dialect.quote_ident(self.name))

    def __repr__(self) -> str:
        return f"I({self.name!r})"


def expr(sql: str, *values: Any) -> RawExpression:
    """Create a raw SQL fragment."""
    return RawExpression(sql, *values)


I = Identifier  # noqa: E741
