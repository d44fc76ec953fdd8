"""At-most-once claim registry keyed by token identifier."""

from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
import logging

from ..core.state_lock import StateLock

logger = logging.getLogger(__name__)


class DedupCache:
    """
    Records the first time each key was claimed.

    ``try_claim`` checks and inserts inside one critical section, so among any
    number of concurrent callers exactly one wins. With ``retention_seconds`` set,
    claims older than the window are treated as absent and may be claimed again.
    """

    def __init__(
        self,
        retention_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.now,
        name: str = "dedup",
    ):
        self.name = name
        self.retention = timedelta(seconds=retention_seconds) if retention_seconds else None
        self._clock = clock
        self._entries: Dict[str, datetime] = {}
        self._lock = StateLock(name)
        logger.info(f"Dedup cache '{name}' initialized (retention: {retention_seconds or 'unbounded'})")

    def _expired(self, first_seen: datetime, now: datetime) -> bool:
        return self.retention is not None and now - first_seen >= self.retention

    async def try_claim(self, key: str) -> bool:
        """Claim *key*. True for the first caller only."""
        async with self._lock.locked():
            now = self._clock()
            first_seen = self._entries.get(key)
            if first_seen is not None and not self._expired(first_seen, now):
                logger.debug(f"[{self.name}] {key} already claimed at {first_seen.isoformat()}")
                return False
            # re-insert so entries stay ordered by claim time
            self._entries.pop(key, None)
            self._entries[key] = now
            if self.retention is not None:
                self._prune(now)
            return True

    async def release(self, key: str) -> bool:
        """Drop a claim so the key can be processed again."""
        async with self._lock.locked():
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"[{self.name}] released claim on {key}")
        return removed

    async def contains(self, key: str) -> bool:
        async with self._lock.locked():
            first_seen = self._entries.get(key)
            return first_seen is not None and not self._expired(first_seen, self._clock())

    async def first_seen(self, key: str) -> Optional[datetime]:
        async with self._lock.locked():
            return self._entries.get(key)

    async def size(self) -> int:
        async with self._lock.locked():
            return len(self._entries)

    def _prune(self, now: datetime) -> None:
        """Drop expired claims from the oldest end, stopping at the first live one."""
        stale = []
        for key, seen in self._entries.items():
            if not self._expired(seen, now):
                break
            stale.append(key)
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"[{self.name}] pruned {len(stale)} expired claims")
