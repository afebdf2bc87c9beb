"""
Tests for ResourceCache and concurrent sync fan-out.
"""
import asyncio

import pytest

from aurelius.integrations.cache import ResourceCache
from aurelius.integrations.errors import SyncError
from aurelius.integrations.sync import run_sync


class TestResourceCache:
    """Tests for ResourceCache."""

    def test_get_set(self):
        cache = ResourceCache("twitter", ["tweets", "users"])
        cache.set("tweets", "1", {"id": "1"})

        assert cache.get("tweets", "1") == {"id": "1"}
        assert cache.get("tweets", "2") is None
        assert cache.has("tweets", "1")

    def test_unknown_resource_raises(self):
        cache = ResourceCache("twitter", ["tweets"])
        with pytest.raises(KeyError):
            cache.get("orders", "1")

    def test_set_many_keys_by_attribute_or_dict_key(self):
        class Item:
            def __init__(self, id):
                self.id = id

        cache = ResourceCache("x", ["items"])
        stored = cache.set_many("items", [Item(1), {"id": "2"}, {"name": "no id"}])

        assert stored == 2
        assert cache.get("items", "1").id == 1
        assert cache.get("items", "2") == {"id": "2"}

    def test_clear_one_resource(self):
        cache = ResourceCache("x", ["a", "b"])
        cache.set("a", "1", 1)
        cache.set("b", "1", 1)

        cache.clear("a")

        assert cache.size("a") == 0
        assert cache.size("b") == 1

    def test_clear_all(self):
        cache = ResourceCache("x", ["a", "b"])
        cache.set("a", "1", 1)
        cache.set("b", "1", 1)

        cache.clear_all()

        assert cache.stats()["sizes"] == {"a": 0, "b": 0}

    def test_hit_miss_stats(self):
        cache = ResourceCache("x", ["a"])
        cache.set("a", "1", 1)
        cache.get("a", "1")
        cache.get("a", "2")

        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    def test_delete_and_values(self):
        cache = ResourceCache("x", ["a"])
        cache.set("a", "1", "one")
        cache.set("a", "2", "two")
        cache.delete("a", "1")
        cache.delete("a", "missing")

        assert cache.values("a") == ["two"]


class TestRunSync:
    """Tests for run_sync."""

    @pytest.mark.asyncio
    async def test_counts_items_across_branches(self):
        async def items(n):
            return list(range(n))

        result = await run_sync("acme", {"a": items(2), "b": items(3)})

        assert result.success is True
        assert result.items_processed == 5
        assert result.metadata["branches"] == {"a": 2, "b": 3}

    @pytest.mark.asyncio
    async def test_partial_failure_reports_errors(self):
        async def ok():
            return [1]

        async def broken():
            raise RuntimeError("boom")

        result = await run_sync("acme", {"ok": ok(), "broken": broken()})

        assert result.success is False
        assert result.items_processed == 1
        assert result.items_skipped == 1
        assert result.errors == ["broken sync failed: boom"]

    @pytest.mark.asyncio
    async def test_all_failed_raises(self):
        async def broken():
            raise RuntimeError("boom")

        with pytest.raises(SyncError, match="All sync operations failed"):
            await run_sync("acme", {"a": broken(), "b": broken()})

    @pytest.mark.asyncio
    async def test_branches_run_concurrently(self):
        started = []

        async def branch(name):
            started.append(name)
            await asyncio.sleep(0.01)
            assert len(started) == 2
            return []

        result = await run_sync("acme", {"a": branch("a"), "b": branch("b")})

        assert result.success is True
