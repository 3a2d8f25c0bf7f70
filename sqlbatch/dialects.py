"""Dialects: identifier quoting and placeholder tokens per database family."""

from dataclasses import dataclass
from typing import Final

from sqlglot import exp

from sqlbatch.exceptions import ImproperConfigurationError

__all__ = ("MYSQL", "POSTGRES", "SQLITE", "Dialect", "get_dialect")


@dataclass(frozen=True)
class Dialect:
    """SQL flavour used while rendering statements.

    Identifier quoting is delegated to sqlglot's dialect of the same name, so
    ``quote_ident("users.id")`` renders ``"users"."id"`` for SQLite and
    PostgreSQL and ```users`.`id``` for MySQL.

    Args:
        name: sqlglot dialect name.
        placeholder_style: ``qmark`` (``?``), ``format`` (``%s``) or ``numeric`` (``$1``).
    """

    name: str
    placeholder_style: str = "qmark"

    def quote_ident(self, name: str) -> str:
        parts = []
        for part in name.split("."):
            if part == "*":
                parts.append(part)
                continue
            parts.append(exp.to_identifier(part, quoted=True).sql(dialect=self.name))
        return ".".join(parts)

    def placeholder(self, index: int) -> str:
        """Return the bind token for the ``index``-th (zero based) parameter."""
        if self.placeholder_style == "numeric":
            return f"${index + 1}"
        if self.placeholder_style == "format":
            return "%s"
        return "?"


SQLITE: Final = Dialect("sqlite", "qmark")
MYSQL: Final = Dialect("mysql", "format")
POSTGRES: Final = Dialect("postgres", "numeric")

_DIALECTS: Final = {
    "sqlite": SQLITE,
    "sqlite3": SQLITE,
    "mysql": MYSQL,
    "postgres": POSTGRES,
    "postgresql": POSTGRES,
}


def get_dialect(name: str) -> Dialect:
    """Look up a built-in dialect by driver name."""
    try:
        return _DIALECTS[name.lower()]
    except KeyError:
        msg = f"Unsupported dialect {name!r}. Expected one of: {', '.join(sorted(_DIALECTS))}"
        raise ImproperConfigurationError(msg) from None
