"""TTL cache for listing pages and other read-mostly lookups."""
from __future__ import annotations

from typing import Callable, Generic, Hashable, Iterable, Optional, TypeVar

from cachetools import TTLCache

T = TypeVar("T")


def make_key(prefix: str, *parts: Hashable) -> str:
    """Build a stable cache key; ``None`` parts render as empty strings."""

    return ":".join([prefix, *("" if p is None else str(p) for p in parts)])


class SimpleTTLCache(Generic[T]):
    def __init__(self, ttl: int, maxsize: int = 256) -> None:
        self._cache: TTLCache[str, T] = TTLCache(maxsize=maxsize, ttl=ttl)

    def get(self, key: str) -> Optional[T]:
        return self._cache.get(key)

    def set(self, key: str, value: T) -> None:
        self._cache[key] = value

    def get_or_set(self, key: str, factory: Callable[[], T]) -> T:
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        value = factory()
        self._cache[key] = value
        return value

    def pop(self, key: str) -> None:
        self._cache.pop(key, None)

    def pop_prefix(self, prefix: str) -> None:
        for key in [k for k in self._keys() if k.startswith(prefix)]:
            self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def _keys(self) -> Iterable[str]:
        return list(self._cache.keys())
