"""Per-token swap volume aggregation with idle-entry eviction."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from ..core.state_lock import ReadWriteStateLock

logger = logging.getLogger(__name__)


@dataclass
class VolumeCacheEntry:
    """Observed swap values for one token."""
    observed_values: List[float] = field(default_factory=list)
    last_updated_at: datetime = field(default_factory=datetime.now)

    @property
    def total(self) -> float:
        return sum(self.observed_values)


class VolumeCache:
    """
    Accumulates USD swap values per token.

    Writes take the exclusive side of a read/write lock, snapshots take the shared
    side and return copies. A background sweep drops entries idle for longer than
    ``retention_seconds``.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        self.retention = timedelta(seconds=self.config["retention_seconds"])
        self._clock = clock
        self._entries: Dict[str, VolumeCacheEntry] = {}
        self._lock = ReadWriteStateLock("volume_cache")
        self._running = False
        self._sweep_task: Optional[asyncio.Task] = None
        logger.info(
            f"Volume cache initialized (retention {self.config['retention_seconds']}s, "
            f"sweep every {self.config['sweep_interval']}s)"
        )

    def _default_config(self) -> Dict[str, Any]:
        return {
            "retention_seconds": 1800,
            "sweep_interval": 300,
        }

    async def record_trade(self, token: str, usd_value: float) -> float:
        """Append a trade value and return the token's new total."""
        value = usd_value if usd_value and usd_value > 0 else 0.0
        async with self._lock.write_locked():
            entry = self._entries.get(token)
            if entry is None:
                entry = VolumeCacheEntry(last_updated_at=self._clock())
                self._entries[token] = entry
            entry.observed_values.append(value)
            entry.last_updated_at = self._clock()
            total = entry.total
        logger.debug(f"Recorded ${value:.2f} for {token}, total ${total:.2f}")
        return total

    async def snapshot_above_threshold(self, threshold: float) -> Dict[str, float]:
        """Copy of ``token -> total`` for tokens whose total reaches *threshold*."""
        async with self._lock.read_locked():
            return {
                token: entry.total
                for token, entry in self._entries.items()
                if entry.total >= threshold
            }

    async def get_total(self, token: str) -> float:
        async with self._lock.read_locked():
            entry = self._entries.get(token)
            return entry.total if entry else 0.0

    async def get_entry(self, token: str) -> Optional[VolumeCacheEntry]:
        """Detached copy of a token's entry."""
        async with self._lock.read_locked():
            entry = self._entries.get(token)
            if entry is None:
                return None
            return VolumeCacheEntry(list(entry.observed_values), entry.last_updated_at)

    async def remove(self, token: str) -> bool:
        async with self._lock.write_locked():
            return self._entries.pop(token, None) is not None

    async def size(self) -> int:
        async with self._lock.read_locked():
            return len(self._entries)

    def _is_stale(self, entry: VolumeCacheEntry, now: datetime) -> bool:
        return now - entry.last_updated_at > self.retention

    async def _find_stale(self) -> List[str]:
        async with self._lock.read_locked():
            now = self._clock()
            return [token for token, entry in self._entries.items() if self._is_stale(entry, now)]

    async def _delete_stale(self, candidates: List[str]) -> int:
        removed = 0
        async with self._lock.write_locked():
            now = self._clock()
            for token in candidates:
                entry = self._entries.get(token)
                # refreshed since the scan
                if entry is None or not self._is_stale(entry, now):
                    continue
                del self._entries[token]
                removed += 1
        return removed

    async def sweep(self) -> int:
        """Remove idle entries; returns the number removed."""
        candidates = await self._find_stale()
        if not candidates:
            return 0
        removed = await self._delete_stale(candidates)
        logger.info(f"Volume cache sweep removed {removed} of {len(candidates)} stale entries")
        return removed

    async def start(self):
        """Start the periodic sweep."""
        if self._sweep_task and not self._sweep_task.done():
            return
        self._running = True
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info("Volume cache sweep started")

    async def stop(self):
        """Stop the periodic sweep."""
        self._running = False
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        logger.info("Volume cache sweep stopped")

    async def _sweep_loop(self):
        while self._running:
            await asyncio.sleep(self.config["sweep_interval"])
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Error sweeping volume cache: {e}")
