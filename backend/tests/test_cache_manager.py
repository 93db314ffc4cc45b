"""
CacheManager operations, error translation and circuit breaker.
"""

import pytest

from reviewhub.cache import CacheManager, CacheUnavailableError, ValkeyClient, ValkeyConfig


class TestCacheOperations:

    @pytest.mark.asyncio
    async def test_get_set_delete(self, cache_manager):
        assert await cache_manager.get("k") is None
        assert await cache_manager.set("k", "v", ttl=60)
        assert await cache_manager.get("k") == "v"
        assert await cache_manager.exists("k")
        assert await cache_manager.delete("k")
        assert await cache_manager.get("k") is None

    @pytest.mark.asyncio
    async def test_empty_string_is_a_value(self, cache_manager):
        await cache_manager.set("tomb", "", ttl=60)
        assert await cache_manager.get("tomb") == ""

    @pytest.mark.asyncio
    async def test_ttl_expiry(self, cache_manager, fake_valkey):
        await cache_manager.set("k", "v", ttl=10)
        assert await cache_manager.get_ttl("k") == 10
        fake_valkey.advance(11)
        assert await cache_manager.get("k") is None
        assert await cache_manager.get_ttl("k") is None

    @pytest.mark.asyncio
    async def test_jittered_ttl(self, cache_manager):
        await cache_manager.set("k", "v", ttl=1800, jitter=True)
        assert 1620 <= await cache_manager.get_ttl("k") <= 1980

    @pytest.mark.asyncio
    async def test_set_if_absent(self, cache_manager, fake_valkey):
        assert await cache_manager.set_if_absent("lock:x", "a", 1000)
        assert not await cache_manager.set_if_absent("lock:x", "b", 1000)
        assert await cache_manager.get("lock:x") == "a"
        fake_valkey.advance(1.5)
        assert await cache_manager.set_if_absent("lock:x", "b", 1000)

    @pytest.mark.asyncio
    async def test_increment_and_expire(self, cache_manager):
        assert await cache_manager.increment("counter") == 1
        assert await cache_manager.increment("counter") == 2
        assert await cache_manager.get_ttl("counter") is None
        assert await cache_manager.expire("counter", 100)
        assert await cache_manager.get_ttl("counter") == 100

    @pytest.mark.asyncio
    async def test_sorted_set(self, cache_manager):
        await cache_manager.zadd("z", "3", 30)
        await cache_manager.zadd("z", "1", 10)
        await cache_manager.zadd("z", "2", 20)
        assert await cache_manager.zrange("z", 0, 1) == ["1", "2"]
        assert await cache_manager.zscore("z", "2") == 20.0
        assert await cache_manager.zrem("z", "2") == 1
        assert await cache_manager.zscore("z", "2") is None

    @pytest.mark.asyncio
    async def test_stats_track_hits_and_misses(self, cache_manager):
        await cache_manager.set("k", "v")
        await cache_manager.get("k")
        await cache_manager.get("missing")
        stats = await cache_manager.get_stats()
        assert stats["hit_count"] == 1
        assert stats["miss_count"] == 1
        assert stats["hit_ratio"] == 0.5

    @pytest.mark.asyncio
    async def test_health_check(self, cache_manager):
        health = await cache_manager.health_check()
        assert health["status"] == "healthy"
        assert health["cache_available"] is True


class TestFailureHandling:

    @pytest.mark.asyncio
    async def test_backend_error_raises_cache_unavailable(self, cache_manager, fake_valkey):
        fake_valkey.down = True
        with pytest.raises(CacheUnavailableError) as exc_info:
            await cache_manager.get("k")
        assert exc_info.value.operation == "get"
        assert exc_info.value.key == "k"

    @pytest.mark.asyncio
    async def test_health_check_reports_unhealthy(self, cache_manager, fake_valkey):
        fake_valkey.down = True
        health = await cache_manager.health_check()
        assert health["status"] == "unhealthy"
        assert health["errors"]

    @pytest.mark.asyncio
    async def test_circuit_breaker_opens_and_recovers(self, fake_valkey):
        manager = CacheManager(
            ValkeyClient(ValkeyConfig(), client=fake_valkey),
            circuit_breaker_threshold=2,
            circuit_breaker_timeout=0
        )
        await manager.initialize()

        fake_valkey.down = True
        for _ in range(2):
            with pytest.raises(CacheUnavailableError):
                await manager.get("k")
        assert manager.is_circuit_open

        # timeout 0: next call is allowed through and closes the circuit
        fake_valkey.down = False
        assert await manager.get("k") is None
        assert not manager.is_circuit_open

    @pytest.mark.asyncio
    async def test_open_circuit_rejects_without_calling_backend(self, fake_valkey):
        manager = CacheManager(
            ValkeyClient(ValkeyConfig(), client=fake_valkey),
            circuit_breaker_threshold=1,
            circuit_breaker_timeout=60
        )
        await manager.initialize()

        fake_valkey.down = True
        with pytest.raises(CacheUnavailableError):
            await manager.get("k")

        fake_valkey.down = False
        with pytest.raises(CacheUnavailableError, match="Circuit breaker"):
            await manager.get("k")
        assert manager.stats.rejected_operations == 1
