"""Market-cap progress tracking for tokens that produced a signal."""

import asyncio
import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from ..core.errors import ValidationClientError
from ..core.state_lock import StateLock
from ..data.connector import MarketDataConnector
from ..notify.messages import format_milestone_message
from ..notify.notifier import Notifier

logger = logging.getLogger(__name__)


@dataclass
class TrackedToken:
    """Progress state of one signalled token.

    ``highest_market_cap_seen`` and ``last_notified_level`` never decrease.
    """
    token: str
    baseline_market_cap: float
    highest_market_cap_seen: float
    added_at: datetime
    last_notified_level: int = 0
    token_name: str = ""

    @property
    def multiplier(self) -> float:
        return self.highest_market_cap_seen / self.baseline_market_cap

    @property
    def level(self) -> int:
        return int(math.floor(self.multiplier))


class ProgressTracker:
    """
    Periodically re-validates tracked tokens and reports integer-multiple
    market-cap milestones (2x, 3x, ...) measured against the registration baseline.

    Each cycle snapshots the tracked set, does all I/O without holding the lock,
    then commits the results for tokens that are still tracked.
    """

    def __init__(
        self,
        connector: MarketDataConnector,
        notifier: Notifier,
        config: Optional[Dict[str, Any]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        self.connector = connector
        self.notifier = notifier
        self._clock = clock
        self._tokens: Dict[str, TrackedToken] = {}
        self._lock = StateLock("progress_tracker")
        self._running = False
        self._task: Optional[asyncio.Task] = None
        logger.info(
            f"Progress tracker initialized (every {self.config['check_interval']}s, "
            f"max age {self.config['max_age_hours'] or 'unbounded'}h, "
            f"max tracked {self.config['max_tracked'] or 'unbounded'})"
        )

    def _default_config(self) -> Dict[str, Any]:
        return {
            "check_interval": 120,
            "pacing_delay": 0.2,
            "min_notify_level": 2,
            "max_age_hours": None,
            "max_tracked": None,
            "link_base": "https://dexscreener.com/solana",
        }

    async def register(self, token: str, market_cap: float, token_name: str = "") -> bool:
        """Start tracking *token* with *market_cap* as baseline. False when not added."""
        if market_cap <= 0:
            return False
        async with self._lock.locked():
            if token in self._tokens:
                return False
            self._tokens[token] = TrackedToken(
                token=token,
                baseline_market_cap=market_cap,
                highest_market_cap_seen=market_cap,
                added_at=self._clock(),
                token_name=token_name,
            )
            self._evict_locked()
        logger.info(f"Tracking progress for {token} (baseline MC ${market_cap:,.0f})")
        return True

    async def remove(self, token: str) -> bool:
        async with self._lock.locked():
            return self._tokens.pop(token, None) is not None

    async def get(self, token: str) -> Optional[TrackedToken]:
        """Detached copy of a tracked token."""
        async with self._lock.locked():
            tracked = self._tokens.get(token)
            return replace(tracked) if tracked else None

    async def is_tracked(self, token: str) -> bool:
        async with self._lock.locked():
            return token in self._tokens

    async def snapshot(self) -> List[TrackedToken]:
        async with self._lock.locked():
            return [replace(t) for t in self._tokens.values()]

    async def size(self) -> int:
        async with self._lock.locked():
            return len(self._tokens)

    def _evict_locked(self) -> List[str]:
        """Apply the retention policy. Caller holds the lock."""
        evicted: List[str] = []
        max_age = self.config.get("max_age_hours")
        if max_age:
            cutoff = self._clock() - timedelta(hours=max_age)
            for token, tracked in list(self._tokens.items()):
                if tracked.added_at < cutoff:
                    del self._tokens[token]
                    evicted.append(token)

        max_tracked = self.config.get("max_tracked")
        if max_tracked and len(self._tokens) > max_tracked:
            oldest_first = sorted(self._tokens.values(), key=lambda t: t.added_at)
            for tracked in oldest_first[:len(self._tokens) - max_tracked]:
                del self._tokens[tracked.token]
                evicted.append(tracked.token)

        if evicted:
            logger.info(f"Evicted {len(evicted)} tracked tokens: {evicted}")
        return evicted

    async def run_cycle(self) -> int:
        """One progress check over every tracked token. Returns milestones sent."""
        async with self._lock.locked():
            self._evict_locked()
            pending = [replace(t) for t in self._tokens.values()]

        if not pending:
            logger.debug("No tokens currently tracked")
            return 0

        logger.info(f"Running progress check for {len(pending)} tracked tokens")
        updates: Dict[str, TrackedToken] = {}
        sent = 0

        try:
            for index, tracked in enumerate(pending):
                if index:
                    await asyncio.sleep(self.config["pacing_delay"])
                try:
                    result = await self.connector.validate(tracked.token)
                except ValidationClientError as e:
                    logger.warning(f"Progress check failed for {tracked.token}, skipping this cycle: {e}")
                    continue
                except Exception as e:
                    logger.error(f"Unexpected error checking {tracked.token}, skipping this cycle: {e!r}")
                    continue

                if not result.has_market_data:
                    logger.info(f"No market data for tracked token {tracked.token} ({result.fail_reasons}), skipping")
                    continue

                current = result.market_cap
                if current > tracked.highest_market_cap_seen:
                    logger.debug(f"New high for {tracked.token}: ${current:,.0f}")
                    tracked.highest_market_cap_seen = current

                level = tracked.level
                if level > tracked.last_notified_level and level >= self.config["min_notify_level"]:
                    message = format_milestone_message(
                        tracked.token,
                        level,
                        tracked.baseline_market_cap,
                        tracked.highest_market_cap_seen,
                        token_name=tracked.token_name or result.display_name,
                        link_base=self.config["link_base"],
                    )
                    try:
                        await self.notifier.send_milestone_update(message)
                        logger.info(f"{tracked.token} reached {level}x (ATH MC ${tracked.highest_market_cap_seen:,.0f})")
                    except Exception as e:
                        logger.error(f"Failed to send milestone update for {tracked.token}: {e}")
                    tracked.last_notified_level = level
                    sent += 1

                updates[tracked.token] = tracked
        finally:
            # levels already announced must persist even if the cycle is cut short
            await self._commit(updates)
        return sent

    async def _commit(self, updates: Dict[str, TrackedToken]) -> None:
        async with self._lock.locked():
            for token, updated in updates.items():
                current = self._tokens.get(token)
                # removed during the cycle
                if current is None:
                    continue
                current.highest_market_cap_seen = max(current.highest_market_cap_seen, updated.highest_market_cap_seen)
                current.last_notified_level = max(current.last_notified_level, updated.last_notified_level)

    async def start(self):
        """Start the periodic progress check."""
        if self._task and not self._task.done():
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Progress tracker started")

    async def stop(self):
        """Stop the periodic progress check."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Progress tracker stopped")

    async def _loop(self):
        while self._running:
            await asyncio.sleep(self.config["check_interval"])
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"Error in progress check cycle: {e}")
