"""Per-call cache settings."""

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlbatch.protocols import CacheBackend

__all__ = ("CacheDirective", "make_cache_key")


@dataclass(frozen=True)
class CacheDirective:
    """How a single ``execute``/``query`` call uses the cache.

    On ``query`` the key is read before the database and written after a
    miss. On ``execute`` the key is deleted after a successful write.

    Args:
        backend: Cache backend holding the entry.
        key: Entry key. Required when caching a query.
        ttl: Entry lifetime in seconds; ``None`` keeps it until deleted.
        count: Wrap the query in ``SELECT COUNT(*)`` and cache the integer.
        enabled: Turn caching off without dropping the directive.
    """

    backend: "CacheBackend"
    key: str = ""
    ttl: Optional[int] = None
    count: bool = False
    enabled: bool = True


def make_cache_key(sql: str, parameters: "Sequence[Any]" = (), prefix: str = "sqlbatch") -> str:
    """Derive a stable cache key from rendered SQL and its parameters."""
    digest = hashlib.md5(f"{sql}|{parameters!r}".encode(), usedforsecurity=False).hexdigest()
    return f"{prefix}:{digest}"
