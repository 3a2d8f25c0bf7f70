"""Row materialization.

Mappers are built once per ``(schema_type, column_names)`` pair and reused for
every row and every later query with the same shape.
"""

import dataclasses
import datetime
import uuid
from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from functools import lru_cache
from typing import Any, Final, Optional

import msgspec

from sqlbatch.exceptions import ImproperConfigurationError

__all__ = ("RowMapper", "cache_entry_type", "get_row_mapper", "make_row_mapper")

RowMapper = Callable[[Sequence[Any]], Any]

SCALAR_SCHEMA_TYPES: Final = frozenset(
    {bool, int, float, str, bytes, Decimal, datetime.datetime, datetime.date, datetime.time, uuid.UUID}
)


def _is_struct(schema_type: Any) -> bool:
    return isinstance(schema_type, type) and issubclass(schema_type, msgspec.Struct)


@lru_cache(maxsize=512)
def get_row_mapper(schema_type: Optional[type], column_names: "tuple[str, ...]") -> RowMapper:
    """Return a callable turning a raw row into ``schema_type``.

    Supported shapes: ``None``/``dict`` (a column-name mapping), dataclasses,
    msgspec structs and scalar types (the first column).

    Raises:
        ImproperConfigurationError: ``schema_type`` is none of the above.
    """
    if schema_type is None or schema_type is dict:
        return lambda row: dict(zip(column_names, row))

    if schema_type in SCALAR_SCHEMA_TYPES:
        return lambda row: row[0]

    if dataclasses.is_dataclass(schema_type):
        wanted = {
            field.metadata.get("column", field.name): field.name
            for field in dataclasses.fields(schema_type)
            if field.init
        }
        bindings = tuple((index, wanted[name]) for index, name in enumerate(column_names) if name in wanted)
        return lambda row: schema_type(**{field_name: row[index] for index, field_name in bindings})

    if _is_struct(schema_type):
        return lambda row: msgspec.convert(dict(zip(column_names, row)), type=schema_type, strict=False)

    msg = f"Unsupported schema type {schema_type!r}: expected dict, a dataclass, a msgspec Struct or a scalar type"
    raise ImproperConfigurationError(msg)


def make_row_mapper(
    column_names: "Sequence[str]",
    schema_type: Optional[type] = None,
    row_mapper: "Optional[Callable[[Mapping[str, Any]], Any]]" = None,
) -> RowMapper:
    """Resolve the mapper for one query, preferring an explicit ``row_mapper``."""
    columns = tuple(column_names)
    if row_mapper is not None:
        return lambda row: row_mapper(dict(zip(columns, row)))
    return get_row_mapper(schema_type, columns)


def cache_entry_type(*, one: bool) -> Any:
    """Type used to decode a cached result.

    Cached results are always column-name rows; the requested shape is applied
    after decoding, exactly as on a database read.
    """
    if one:
        return Optional[dict[str, Any]]
    return list[dict[str, Any]]
