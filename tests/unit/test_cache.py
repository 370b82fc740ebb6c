"""Unit tests for the memory, Upstash and layered cache tiers."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from doughcalc.cache.layered import LayeredCache
from doughcalc.cache.memory import MemoryCache
from doughcalc.cache.upstash import UpstashCache, UpstashError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_session(body=None, status=200):
    """aiohttp session mock whose ``post`` returns ``body`` as JSON."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=body)
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock()
    session.closed = False
    session.post = MagicMock(return_value=context)
    session.close = AsyncMock()
    return session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory(clock):
    return MemoryCache(default_ttl=60, max_entries=3, clock=clock)


class TestMemoryCache:
    @pytest.mark.asyncio
    async def test_set_and_get(self, memory):
        await memory.set("k", {"a": [1, 2]})

        assert await memory.get("k") == {"a": [1, 2]}
        assert await memory.get("missing") is None

    @pytest.mark.asyncio
    async def test_returns_copies(self, memory):
        await memory.set("k", {"a": 1})

        (await memory.get("k"))["a"] = 2

        assert await memory.get("k") == {"a": 1}

    @pytest.mark.asyncio
    async def test_entries_expire(self, memory, clock):
        await memory.set("short", 1, ttl=10)
        await memory.set("default", 2)

        clock.advance(11)

        assert await memory.get("short") is None
        assert await memory.get("default") == 2
        clock.advance(50)
        assert await memory.get("default") is None
        assert len(memory) == 0

    @pytest.mark.asyncio
    async def test_oldest_entry_evicted_at_capacity(self, memory):
        for key in ("a", "b", "c"):
            await memory.set(key, key)
        await memory.set("a", "again")
        await memory.set("d", "d")

        assert len(memory) == 3
        assert await memory.get("b") is None
        assert await memory.get("a") == "again"

    @pytest.mark.asyncio
    async def test_rejects_non_json_values(self, memory):
        await memory.set("k", {1, 2})

        assert await memory.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, memory):
        await memory.set("a", 1)
        await memory.set("b", 2)

        await memory.delete("a")
        assert await memory.get("a") is None

        await memory.clear()
        assert len(memory) == 0

    @pytest.mark.asyncio
    async def test_sweep(self, memory, clock):
        await memory.set("a", 1, ttl=5)
        await memory.set("b", 2, ttl=50)
        clock.advance(10)

        assert memory.sweep() == 1
        assert len(memory) == 1

    @pytest.mark.asyncio
    async def test_background_sweeper(self, memory, clock):
        await memory.set("a", 1, ttl=5)
        clock.advance(10)

        memory.start_sweeper(0.01)
        await asyncio.sleep(0.05)
        await memory.stop_sweeper()

        assert len(memory) == 0


class TestUpstashCache:
    @pytest.mark.asyncio
    async def test_command_posts_string_array(self):
        session = make_session({"result": "OK"})
        cache = UpstashCache("https://example.upstash.io/", "token", session=session)

        assert await cache.command("SET", "k", 1) == "OK"
        session.post.assert_called_once_with("https://example.upstash.io", json=["SET", "k", "1"])

    @pytest.mark.asyncio
    async def test_command_raises_on_error_body(self):
        cache = UpstashCache("https://example.upstash.io", "token", session=make_session({"error": "WRONGPASS"}))

        with pytest.raises(UpstashError, match="WRONGPASS"):
            await cache.command("GET", "k")

    @pytest.mark.asyncio
    async def test_command_raises_on_http_error(self):
        cache = UpstashCache("https://example.upstash.io", "token", session=make_session({}, status=500))

        with pytest.raises(UpstashError):
            await cache.command("GET", "k")

    @pytest.mark.asyncio
    async def test_get_decodes_json_under_prefix(self):
        session = make_session({"result": '{"a": 1}'})
        cache = UpstashCache("https://example.upstash.io", "token", prefix="p:", session=session)

        assert await cache.get("k") == {"a": 1}
        assert session.post.call_args.kwargs["json"] == ["GET", "p:k"]

    @pytest.mark.asyncio
    async def test_get_miss(self):
        cache = UpstashCache("https://example.upstash.io", "token", session=make_session({"result": None}))

        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_set_sends_ttl(self):
        session = make_session({"result": "OK"})
        cache = UpstashCache("https://example.upstash.io", "token", prefix="p:", session=session)

        assert await cache.set("k", {"a": 1}, ttl=60) is True
        assert session.post.call_args.kwargs["json"] == ["SET", "p:k", '{"a": 1}', "EX", "60"]

    @pytest.mark.asyncio
    async def test_failures_degrade_instead_of_raising(self):
        session = make_session()
        session.post.side_effect = aiohttp.ClientError("connection refused")
        cache = UpstashCache("https://example.upstash.io", "token", session=session)

        assert await cache.get("k") is None
        assert await cache.set("k", 1) is False
        assert await cache.has("k") is False
        assert await cache.ttl("k") == -1
        await cache.delete("k")
        await cache.clear()

    @pytest.mark.asyncio
    async def test_has_and_ttl(self):
        cache = UpstashCache("https://example.upstash.io", "token", session=make_session())
        cache.command = AsyncMock(side_effect=[1, 42])

        assert await cache.has("k") is True
        assert await cache.ttl("k") == 42

    @pytest.mark.asyncio
    async def test_clear_deletes_prefixed_keys(self):
        cache = UpstashCache("https://example.upstash.io", "token", prefix="p:", session=make_session())
        cache.command = AsyncMock(side_effect=[["p:a", "p:b"], 2])

        await cache.clear()

        assert cache.command.await_args_list[0].args == ("KEYS", "p:*")
        assert cache.command.await_args_list[1].args == ("DEL", "p:a", "p:b")

    @pytest.mark.asyncio
    async def test_close(self):
        session = make_session()
        cache = UpstashCache("https://example.upstash.io", "token", session=session)

        await cache.close()

        session.close.assert_awaited_once()


def make_persistent(value=None):
    persistent = MagicMock(spec=UpstashCache)
    persistent.get = AsyncMock(return_value=value)
    persistent.set = AsyncMock(return_value=True)
    persistent.delete = AsyncMock()
    persistent.close = AsyncMock()
    return persistent


class TestLayeredCache:
    @pytest.mark.asyncio
    async def test_memory_hit_skips_persistent(self, memory):
        persistent = make_persistent({"from": "upstash"})
        cache = LayeredCache(memory, persistent)
        await memory.set("k", {"from": "memory"})

        assert await cache.get("k") == {"from": "memory"}
        persistent.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_persistent_hit_repopulates_memory(self, memory):
        cache = LayeredCache(memory, make_persistent({"from": "upstash"}), ttl=30)

        assert await cache.get("k") == {"from": "upstash"}
        assert await memory.get("k") == {"from": "upstash"}

    @pytest.mark.asyncio
    async def test_miss_in_both_tiers(self, memory):
        assert await LayeredCache(memory, make_persistent()).get("k") is None

    @pytest.mark.asyncio
    async def test_set_writes_both_tiers(self, memory):
        persistent = make_persistent()
        cache = LayeredCache(memory, persistent, ttl=30)

        await cache.set("k", {"a": 1})

        assert await memory.get("k") == {"a": 1}
        persistent.set.assert_awaited_once_with("k", {"a": 1}, 30)

    @pytest.mark.asyncio
    async def test_persistent_write_failure_keeps_memory_entry(self, memory):
        persistent = make_persistent()
        persistent.set.return_value = False
        cache = LayeredCache(memory, persistent)

        await cache.set("k", 1)

        assert await cache.get("k") == 1

    @pytest.mark.asyncio
    async def test_memory_only(self, memory):
        cache = LayeredCache(memory)

        assert not cache.persistent_enabled
        await cache.set("k", 1)
        assert await cache.get("k") == 1
        await cache.delete("k")
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_and_close_reach_both_tiers(self, memory):
        persistent = make_persistent()
        cache = LayeredCache(memory, persistent)
        await memory.set("k", 1)

        await cache.delete("k")
        await cache.close()

        assert await memory.get("k") is None
        persistent.delete.assert_awaited_once_with("k")
        persistent.close.assert_awaited_once()
