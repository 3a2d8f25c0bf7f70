"""Binary encoding of cache entries.

Entries are msgpack documents produced by msgspec. Column values that msgpack
has no native type for (decimals, dates, times, intervals, UUIDs) are stored as
msgpack extension values so they decode to the same Python type, even inside
untyped ``dict`` rows. The format is private to this library and not
guaranteed to be readable across versions.
"""

import datetime
import uuid
from decimal import Decimal
from typing import Any, Final

import msgspec

from sqlbatch.exceptions import SerializationError

__all__ = ("decode_cache_entry", "encode_cache_entry")

EXT_DECIMAL: Final = 1
EXT_DATETIME: Final = 2
EXT_DATE: Final = 3
EXT_TIME: Final = 4
EXT_TIMEDELTA: Final = 5
EXT_UUID: Final = 6

_encoder = msgspec.msgpack.Encoder()


def _timedelta_micros(value: datetime.timedelta) -> int:
    return (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds


def _tag(value: Any) -> Any:
    """Replace column values msgpack would flatten to strings with extension values."""
    if isinstance(value, dict):
        return {key: _tag(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_tag(item) for item in value]
    if isinstance(value, Decimal):
        return msgspec.msgpack.Ext(EXT_DECIMAL, str(value).encode())
    # datetime before date: every datetime is a date
    if isinstance(value, datetime.datetime):
        return msgspec.msgpack.Ext(EXT_DATETIME, value.isoformat().encode())
    if isinstance(value, datetime.date):
        return msgspec.msgpack.Ext(EXT_DATE, value.isoformat().encode())
    if isinstance(value, datetime.time):
        return msgspec.msgpack.Ext(EXT_TIME, value.isoformat().encode())
    if isinstance(value, datetime.timedelta):
        return msgspec.msgpack.Ext(EXT_TIMEDELTA, str(_timedelta_micros(value)).encode())
    if isinstance(value, uuid.UUID):
        return msgspec.msgpack.Ext(EXT_UUID, value.bytes)
    return value


def _ext_hook(code: int, data: memoryview) -> Any:
    raw = bytes(data)
    if code == EXT_DECIMAL:
        return Decimal(raw.decode())
    if code == EXT_DATETIME:
        return datetime.datetime.fromisoformat(raw.decode())
    if code == EXT_DATE:
        return datetime.date.fromisoformat(raw.decode())
    if code == EXT_TIME:
        return datetime.time.fromisoformat(raw.decode())
    if code == EXT_TIMEDELTA:
        return datetime.timedelta(microseconds=int(raw.decode()))
    if code == EXT_UUID:
        return uuid.UUID(bytes=raw)
    msg = f"unknown extension type {code}"
    raise ValueError(msg)


def encode_cache_entry(value: Any) -> bytes:
    """Encode a count, a row, or a list of rows.

    Raises:
        SerializationError: The value holds a type msgpack cannot represent.
    """
    try:
        return _encoder.encode(_tag(value))
    except (TypeError, ValueError, msgspec.MsgspecError) as e:
        msg = f"Failed to encode cache entry: {e}"
        raise SerializationError(msg) from e


def decode_cache_entry(data: bytes, target_type: Any = Any) -> Any:
    """Decode bytes produced by :func:`encode_cache_entry` into ``target_type``.

    Raises:
        SerializationError: The bytes are corrupt or do not match ``target_type``.
    """
    try:
        return msgspec.msgpack.decode(data, type=target_type, ext_hook=_ext_hook)
    except (TypeError, ValueError, msgspec.MsgspecError) as e:
        msg = f"Failed to decode cache entry: {e}"
        raise SerializationError(msg) from e
