"""Bounded least-recently-used cache."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Hashable
from typing import Generic, TypeVar

__all__ = ["BoundedCache"]

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BoundedCache(Generic[K, V]):
    """Key/value map holding at most ``capacity`` entries.

    Both :meth:`get` and :meth:`set` mark a key as most recently used. When a
    new key is inserted at capacity, the least recently used entry is dropped.

    Example:
        ```python
        counts: BoundedCache[str, int] = BoundedCache(capacity=2)
        counts.set("a", 1)
        counts.set("b", 2)
        counts.get("a")
        counts.set("c", 3)  # evicts "b"
        ```
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._entries: OrderedDict[K, V] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: K) -> V | None:
        """Return the value for ``key`` or None, refreshing its recency."""
        try:
            value = self._entries[key]
        except KeyError:
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: K, value: V) -> None:
        """Insert or replace ``key``, evicting the oldest entry if full."""
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self._capacity:
            self._entries.popitem(last=False)
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[K]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        # membership does not count as a use
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"BoundedCache(capacity={self._capacity}, size={len(self._entries)})"
