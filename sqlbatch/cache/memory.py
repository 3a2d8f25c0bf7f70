"""In-process cache backend."""

import asyncio
import time
from typing import Optional

__all__ = ("MemoryCacheBackend",)


class MemoryCacheBackend:
    """Dictionary-backed cache with per-entry expiry.

    Expired entries are dropped lazily when read. Suitable for tests and for
    single-process deployments.
    """

    __slots__ = ("_entries", "_lock")

    def __init__(self) -> None:
        self._entries: dict[str, tuple[bytes, Optional[float]]] = {}
        self._lock = asyncio.Lock()

    async def set(self, key: str, data: bytes, ttl: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        async with self._lock:
            self._entries[key] = (bytes(data), expires_at)

    async def get_bytes(self, key: str) -> "tuple[Optional[bytes], bool]":
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            data, expires_at = entry
            if expires_at is not None and expires_at <= time.monotonic():
                del self._entries[key]
                return None, False
            return data, True

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
