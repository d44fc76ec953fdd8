"""Secondary signal path: validate tokens whose cached swap volume crossed a threshold."""

import asyncio
import logging
from typing import Any, Dict, Optional

from ..cache.volume import VolumeCache
from ..core.errors import RateLimitedError, ValidationClientError
from ..data.connector import MarketDataConnector
from ..notify.messages import format_volume_trigger_message
from ..notify.notifier import Notifier

logger = logging.getLogger(__name__)


class VolumeTriggerMonitor:
    """
    Every ``check_interval`` seconds, validates each token whose accumulated swap
    volume reached ``threshold`` USD.

    A validation decision (pass or fail) removes the token from the cache. A
    rate-limit error keeps it for the next cycle; any other client error drops it.
    """

    def __init__(
        self,
        volume_cache: VolumeCache,
        connector: MarketDataConnector,
        notifier: Notifier,
        config: Optional[Dict[str, Any]] = None,
    ):
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        self.volume_cache = volume_cache
        self.connector = connector
        self.notifier = notifier
        self._running = False
        self._task: Optional[asyncio.Task] = None
        logger.info(
            f"Volume trigger initialized (threshold ${self.config['threshold']:,.0f}, "
            f"every {self.config['check_interval']}s)"
        )

    def _default_config(self) -> Dict[str, Any]:
        return {
            "threshold": 500.0,
            "check_interval": 180,
            "pacing_delay": 0.05,
            "link_base": "https://dexscreener.com/solana",
        }

    async def run_cycle(self) -> Dict[str, int]:
        """One pass over tokens above the threshold; returns outcome counts."""
        candidates = await self.volume_cache.snapshot_above_threshold(self.config["threshold"])
        stats = {"checked": 0, "validated": 0, "rejected": 0, "rate_limited": 0, "errors": 0}
        if not candidates:
            logger.debug("No cached tokens above volume threshold")
            return stats

        logger.info(f"Volume check: {len(candidates)} tokens above ${self.config['threshold']:,.0f}")

        for token, total_volume in candidates.items():
            stats["checked"] += 1
            try:
                result = await self.connector.validate(token)
            except RateLimitedError as e:
                logger.warning(f"Rate limited validating {token}, keeping for next cycle: {e}")
                stats["rate_limited"] += 1
                await asyncio.sleep(self.config["pacing_delay"])
                continue
            except ValidationClientError as e:
                logger.warning(f"Error validating {token}, removing from volume cache: {e}")
                await self.volume_cache.remove(token)
                stats["errors"] += 1
                await asyncio.sleep(self.config["pacing_delay"])
                continue
            except Exception as e:
                logger.error(f"Unexpected error validating {token}, removing from volume cache: {e!r}")
                await self.volume_cache.remove(token)
                stats["errors"] += 1
                await asyncio.sleep(self.config["pacing_delay"])
                continue

            if result.is_valid:
                message = format_volume_trigger_message(
                    token, total_volume, result, link_base=self.config["link_base"]
                )
                try:
                    await self.notifier.send_text_signal(message)
                except Exception as e:
                    logger.error(f"Failed to deliver volume signal for {token}: {e}")
                logger.info(f"Token {token} passed validation via volume check (${total_volume:,.2f})")
                stats["validated"] += 1
            else:
                logger.info(f"Token {token} failed volume-triggered validation: {'; '.join(result.fail_reasons)}")
                stats["rejected"] += 1

            await self.volume_cache.remove(token)
            await asyncio.sleep(self.config["pacing_delay"])

        logger.info(
            f"Volume check complete: validated={stats['validated']} rejected={stats['rejected']} "
            f"rate_limited={stats['rate_limited']} errors={stats['errors']}"
        )
        return stats

    async def start(self):
        """Start the periodic volume check."""
        if self._task and not self._task.done():
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Volume trigger started")

    async def stop(self):
        """Stop the periodic volume check."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Volume trigger stopped")

    async def _loop(self):
        while self._running:
            await asyncio.sleep(self.config["check_interval"])
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"Error in volume check cycle: {e}")
