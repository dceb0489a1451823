"""Unit tests for BoundedCache."""

from __future__ import annotations

import pytest

from historian.cache.store import BoundedCache


class TestBoundedCache:
    def test_get_missing_returns_none(self) -> None:
        cache: BoundedCache[str, int] = BoundedCache(2)
        assert cache.get("missing") is None

    def test_set_then_get(self) -> None:
        cache: BoundedCache[str, int] = BoundedCache(2)
        cache.set("a", 1)
        assert cache.get("a") == 1

    def test_zero_value_is_stored(self) -> None:
        cache: BoundedCache[str, int] = BoundedCache(2)
        cache.set("empty", 0)
        assert cache.get("empty") == 0
        assert "empty" in cache

    def test_never_exceeds_capacity(self) -> None:
        cache: BoundedCache[int, int] = BoundedCache(5)
        for i in range(50):
            cache.set(i, i)
            assert len(cache) <= 5
        assert cache.keys() == [45, 46, 47, 48, 49]

    def test_least_recently_used_is_evicted(self) -> None:
        cache: BoundedCache[str, int] = BoundedCache(3)
        for key in ("a", "b", "c"):
            cache.set(key, 0)
        cache.set("d", 0)
        assert cache.get("a") is None
        assert cache.keys() == ["b", "c", "d"]

    def test_get_refreshes_recency(self) -> None:
        cache: BoundedCache[str, int] = BoundedCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.get("b") is None
        assert cache.get("a") == 1

    def test_set_existing_key_refreshes_without_eviction(self) -> None:
        cache: BoundedCache[str, int] = BoundedCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        assert len(cache) == 2
        cache.set("c", 3)
        assert cache.keys() == ["a", "c"]
        assert cache.get("a") == 10

    def test_contains_does_not_refresh(self) -> None:
        cache: BoundedCache[str, int] = BoundedCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        assert "a" in cache
        cache.set("c", 3)
        assert "a" not in cache

    def test_unaccessed_key_gone_after_capacity_inserts(self) -> None:
        capacity = 4
        cache: BoundedCache[str, int] = BoundedCache(capacity)
        cache.set("old", 0)
        for i in range(capacity):
            cache.set(f"k{i}", i)
        assert cache.get("old") is None

    def test_clear(self) -> None:
        cache: BoundedCache[str, int] = BoundedCache(2)
        cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0
        assert cache.get("a") is None

    def test_invalid_capacity_rejected(self) -> None:
        with pytest.raises(ValueError, match="capacity"):
            BoundedCache(0)

    def test_independent_instances(self) -> None:
        pages: BoundedCache[str, tuple[str, ...]] = BoundedCache(1)
        counts: BoundedCache[str, int] = BoundedCache(3)
        pages.set("k", ("h1",))
        counts.set("k", 1)
        pages.set("k2", ("h2",))
        assert counts.get("k") == 1
        assert pages.capacity == 1
        assert counts.capacity == 3

    def test_repr(self) -> None:
        cache: BoundedCache[str, int] = BoundedCache(2)
        cache.set("a", 1)
        assert repr(cache) == "BoundedCache(capacity=2, size=1)"
