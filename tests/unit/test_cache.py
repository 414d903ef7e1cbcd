"""Unit tests for the Redis cache wrapper."""

import pytest

from brokerdesk.core.cache import Cache


class TestCache:
    async def test_json_values_round_trip(self, fake_cache):
        await fake_cache.set("quote:workflow:q1", {"stage": "draft", "premium": "10"})

        assert await fake_cache.get("quote:workflow:q1") == {
            "stage": "draft",
            "premium": "10",
        }

    async def test_plain_strings_are_returned_as_is(self, fake_cache):
        await fake_cache.set("greeting", "hello")
        assert await fake_cache.get("greeting") == "hello"

    async def test_missing_key(self, fake_cache):
        assert await fake_cache.get("absent") is None
        assert not await fake_cache.exists("absent")

    async def test_ttl_is_applied(self, fake_cache):
        await fake_cache.set("short", "x", ttl=30)
        ttl = await fake_cache._client().ttl("short")
        assert 0 < ttl <= 30

    async def test_delete(self, fake_cache):
        await fake_cache.set("doomed", "x")
        assert await fake_cache.delete("doomed")
        assert not await fake_cache.delete("doomed")

    async def test_clear_pattern(self, fake_cache):
        await fake_cache.set("quote:workflow:a", "1")
        await fake_cache.set("quote:workflow:b", "2")
        await fake_cache.set("other:c", "3")

        assert await fake_cache.clear_pattern("quote:workflow:*") == 2
        assert await fake_cache.exists("other:c")

    async def test_health_check(self, fake_cache):
        assert await fake_cache.health_check()

    async def test_disconnected_cache_raises(self):
        cache = Cache()
        assert not cache.is_connected
        assert not await cache.health_check()
        with pytest.raises(RuntimeError, match="Cache not connected"):
            await cache.get("anything")
