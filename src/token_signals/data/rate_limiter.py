"""Outbound request throttling: token bucket plus a global cooldown gate."""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from ..core.errors import LimiterTimeoutError
from ..core.state_lock import StateLock

logger = logging.getLogger(__name__)


class TokenBucket:
    """Token bucket admitting ``rate`` calls per second with bursts up to ``burst``."""

    def __init__(self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic):
        self.rate = max(0.0, float(rate))
        self.capacity = max(1, int(burst))
        self.tokens = float(self.capacity)
        self._clock = clock
        self.updated = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self.updated)
        self.updated = now
        if self.rate > 0 and elapsed:
            self.tokens = min(float(self.capacity), self.tokens + elapsed * self.rate)

    async def acquire(self, timeout: Optional[float] = None) -> bool:
        """Take one token, waiting cooperatively. False when *timeout* ran out first."""
        start = self._clock()
        while True:
            async with self._lock:
                self._refill()
                if self.tokens >= 1.0:
                    self.tokens -= 1.0
                    return True
                if self.rate > 0:
                    wait_for = (1.0 - self.tokens) / self.rate
                else:
                    wait_for = 0.05
            if timeout is not None:
                remaining = timeout - (self._clock() - start)
                if remaining <= 0:
                    return False
                wait_for = min(wait_for, remaining)
            await asyncio.sleep(wait_for)


class CooldownGate:
    """Process-wide pause on outbound calls after persistent upstream throttling.

    The deadline only ever moves forward: arming while a later deadline is active
    leaves it untouched.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._until: float = 0.0
        self._lock = StateLock("cooldown")

    async def arm(self, seconds: float) -> bool:
        """Start or extend the cooldown. Returns True when the deadline moved."""
        async with self._lock.locked():
            candidate = self._clock() + seconds
            if candidate <= self._until:
                logger.info(
                    f"Cooldown already active for {self._until - self._clock():.1f}s, not shortening"
                )
                return False
            was_active = self._until > self._clock()
            self._until = candidate
        if was_active:
            logger.warning(f"Cooldown extended to {seconds:.0f}s from now")
        else:
            logger.warning(f"Global cooldown activated for {seconds:.0f}s")
        return True

    def remaining(self) -> float:
        """Seconds left on the active cooldown, 0 when inactive."""
        return max(0.0, self._until - self._clock())

    @property
    def active(self) -> bool:
        return self.remaining() > 0

    async def wait(self) -> float:
        """Block until no cooldown is active. Returns the total time waited."""
        waited = 0.0
        while True:
            remaining = self.remaining()
            if remaining <= 0:
                return waited
            logger.info(f"Global cooldown active, waiting {remaining:.1f}s")
            await asyncio.sleep(remaining)
            waited += remaining


class RateLimiter:
    """Admission control for the market-data API.

    Every call first waits out any active cooldown, then takes a token from the
    bucket within ``limiter_timeout`` seconds.
    """

    def __init__(self, config: Optional[Dict] = None, clock: Callable[[], float] = time.monotonic):
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        self.bucket = TokenBucket(self.config["rate"], self.config["burst"], clock=clock)
        self.cooldown = CooldownGate(clock=clock)
        logger.info(
            f"Rate limiter initialized ({self.config['rate']}/s, burst {self.config['burst']}, "
            f"cooldown {self.config['cooldown_seconds']}s)"
        )

    @staticmethod
    def _default_config() -> Dict:
        return {
            "rate": 4.66,
            "burst": 5,
            "limiter_timeout": 15.0,
            "cooldown_seconds": 100.0,
        }

    async def acquire(self, token: str = "") -> None:
        """Wait for the cooldown and a bucket token; raise when the bucket times out."""
        await self.cooldown.wait()
        admitted = await self.bucket.acquire(timeout=self.config["limiter_timeout"])
        if not admitted:
            raise LimiterTimeoutError(
                f"Rate limiter did not admit request within {self.config['limiter_timeout']}s",
                token=token,
            )

    async def trip(self) -> bool:
        """Arm the global cooldown after persistent throttling."""
        return await self.cooldown.arm(self.config["cooldown_seconds"])
