"""Unit tests for the dedup and volume caches."""

import asyncio
from datetime import datetime, timedelta

import pytest

from token_signals.cache.dedup import DedupCache
from token_signals.cache.volume import VolumeCache


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class TestDedupCache:
    """Tests for at-most-once claims."""

    @pytest.mark.asyncio
    async def test_sequential_claims(self):
        cache = DedupCache()
        assert await cache.try_claim("MintA") is True
        assert await cache.try_claim("MintA") is False
        assert await cache.size() == 1

    @pytest.mark.asyncio
    async def test_concurrent_claims_single_winner(self):
        cache = DedupCache()
        results = await asyncio.gather(*(cache.try_claim("MintA") for _ in range(50)))
        assert results.count(True) == 1
        assert results.count(False) == 49

    @pytest.mark.asyncio
    async def test_distinct_keys_independent(self):
        cache = DedupCache()
        assert await cache.try_claim("MintA")
        assert await cache.try_claim("MintB")

    @pytest.mark.asyncio
    async def test_release_allows_reclaim(self):
        cache = DedupCache()
        await cache.try_claim("MintA")
        assert await cache.release("MintA")
        assert not await cache.contains("MintA")
        assert await cache.try_claim("MintA")

    @pytest.mark.asyncio
    async def test_unbounded_by_default(self):
        clock = FakeClock()
        cache = DedupCache(clock=clock)
        await cache.try_claim("MintA")
        clock.advance(days=365)
        assert not await cache.try_claim("MintA")

    @pytest.mark.asyncio
    async def test_retention_expires_claims(self):
        clock = FakeClock()
        cache = DedupCache(retention_seconds=60, clock=clock)
        await cache.try_claim("MintA")
        first = await cache.first_seen("MintA")

        clock.advance(seconds=30)
        assert not await cache.try_claim("MintA")
        clock.advance(seconds=31)
        assert not await cache.contains("MintA")
        assert await cache.try_claim("MintA")
        assert await cache.first_seen("MintA") > first

    @pytest.mark.asyncio
    async def test_expired_claims_pruned_oldest_first(self):
        clock = FakeClock()
        cache = DedupCache(retention_seconds=10, clock=clock)
        await cache.try_claim("sig1")
        await cache.try_claim("sig2")
        clock.advance(seconds=5)
        await cache.try_claim("sig3")

        clock.advance(seconds=5)
        await cache.try_claim("sig4")
        assert await cache.size() == 2
        assert await cache.first_seen("sig1") is None
        assert await cache.first_seen("sig3") is not None

    @pytest.mark.asyncio
    async def test_reclaimed_key_moves_to_newest(self):
        clock = FakeClock()
        cache = DedupCache(retention_seconds=10, clock=clock)
        await cache.try_claim("sig1")
        clock.advance(seconds=5)
        await cache.try_claim("sig2")
        clock.advance(seconds=5)
        assert await cache.try_claim("sig1")

        clock.advance(seconds=6)
        await cache.try_claim("sig3")
        assert await cache.first_seen("sig2") is None
        assert await cache.first_seen("sig1") is not None
        assert await cache.size() == 2


class TestVolumeCache:
    """Tests for volume aggregation and idle eviction."""

    @pytest.mark.asyncio
    async def test_record_and_total(self):
        cache = VolumeCache()
        assert await cache.record_trade("MintA", 100.0) == 100.0
        assert await cache.record_trade("MintA", 250.5) == 350.5
        assert await cache.get_total("MintA") == 350.5
        entry = await cache.get_entry("MintA")
        assert entry.observed_values == [100.0, 250.5]

    @pytest.mark.asyncio
    async def test_negative_values_clamped(self):
        cache = VolumeCache()
        await cache.record_trade("MintA", -50.0)
        assert await cache.get_total("MintA") == 0.0

    @pytest.mark.asyncio
    async def test_snapshot_above_threshold_is_copy(self):
        cache = VolumeCache()
        await cache.record_trade("MintA", 600.0)
        await cache.record_trade("MintB", 100.0)
        await cache.record_trade("MintC", 500.0)

        snapshot = await cache.snapshot_above_threshold(500.0)
        assert snapshot == {"MintA": 600.0, "MintC": 500.0}

        snapshot["MintA"] = 0.0
        await cache.remove("MintC")
        assert await cache.get_total("MintA") == 600.0
        assert "MintC" in snapshot

    @pytest.mark.asyncio
    async def test_sweep_removes_idle_entries(self):
        clock = FakeClock()
        cache = VolumeCache({"retention_seconds": 1800}, clock=clock)
        await cache.record_trade("MintA", 10.0)
        clock.advance(minutes=20)
        await cache.record_trade("MintB", 10.0)
        clock.advance(minutes=11)

        assert await cache.sweep() == 1
        assert await cache.get_entry("MintA") is None
        assert await cache.get_total("MintB") == 10.0

    @pytest.mark.asyncio
    async def test_refresh_between_scan_and_delete_survives(self):
        clock = FakeClock()
        cache = VolumeCache({"retention_seconds": 1800}, clock=clock)
        await cache.record_trade("MintA", 10.0)
        clock.advance(minutes=31)

        candidates = await cache._find_stale()
        assert candidates == ["MintA"]

        await cache.record_trade("MintA", 5.0)
        assert await cache._delete_stale(candidates) == 0
        assert await cache.get_total("MintA") == 15.0

    @pytest.mark.asyncio
    async def test_sweep_loop_runs_and_stops(self):
        cache = VolumeCache({"retention_seconds": 0, "sweep_interval": 0.02})
        await cache.record_trade("MintA", 10.0)
        await cache.start()
        await asyncio.sleep(0.1)
        await cache.stop()

        assert await cache.size() == 0
        assert cache._sweep_task is None

    @pytest.mark.asyncio
    async def test_readers_share_lock(self):
        cache = VolumeCache()
        await cache.record_trade("MintA", 600.0)
        results = await asyncio.gather(*(cache.snapshot_above_threshold(1.0) for _ in range(10)))
        assert all(r == {"MintA": 600.0} for r in results)
