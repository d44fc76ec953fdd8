"""Main signal bot application."""

import asyncio
import logging
import signal
import sys
from typing import Any, Dict, Optional, Union
import os
from dotenv import load_dotenv

load_dotenv()

from .cache.dedup import DedupCache
from .cache.volume import VolumeCache
from .core.errors import PayloadError, SignalError
from .data.connector import DexScreenerConnector
from .data.rate_limiter import RateLimiter
from .events.extractor import TokenExtractor
from .notify.assets import HeliusAssetResolver
from .notify.notifier import LoggingNotifier, Notifier
from .screening.criteria import CriteriaEngine
from .signal.orchestrator import SignalOrchestrator
from .signal.swaps import SwapIngestor
from .signal.volume_trigger import VolumeTriggerMonitor
from .tracking.progress import ProgressTracker

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('token_signals.log'),
            logging.StreamHandler(sys.stdout)
        ]
    )


class SignalBot:
    """Wires the signal pipeline and owns its background tasks."""

    def __init__(self, config: Optional[Dict] = None, notifier: Optional[Notifier] = None):
        """Initialize signal bot."""
        defaults = self._default_config()
        if config:
            for key, val in config.items():
                if isinstance(val, dict) and key in defaults and isinstance(defaults[key], dict):
                    defaults[key].update(val)
                else:
                    defaults[key] = val
        self.config = defaults
        self._running = False
        self._stop_event = asyncio.Event()

        self._init_components(notifier)

        logger.info("Signal bot initialized")

    def _default_config(self) -> Dict:
        """Default configuration."""
        return {
            'chain': {
                'native_mint': 'So11111111111111111111111111111111111111112',
                'link_base': 'https://dexscreener.com/solana',
            },
            'dexscreener': {
                'base_url': 'https://api.dexscreener.com/tokens/v1/solana',
                'timeout': 10,
                'max_retries': 3,
                'backoff_base': 1.0,
                'max_retry_after': 60.0,
                'rate': 4.66,
                'burst': 5,
                'limiter_timeout': 15.0,
                'cooldown_seconds': 100.0,
            },
            'criteria': {},
            'dedup': {
                'retention_seconds': None,
                'swap_retention_seconds': 3600,
            },
            'progress': {
                'check_interval': 120,
                'pacing_delay': 0.2,
                'min_notify_level': 2,
                'max_age_hours': None,
                'max_tracked': None,
            },
            'volume': {
                'threshold': 500.0,
                'check_interval': 180,
                'pacing_delay': 0.05,
                'sweep_interval': 300,
                'retention_seconds': 1800,
            },
            'helius': {
                'api_key': os.getenv('HELIUS_API_KEY', ''),
                'rpc_url': 'https://mainnet.helius-rpc.com/',
                'timeout': 10,
                'max_retries': 3,
                'backoff_base': 1.0,
            },
        }

    def _init_components(self, notifier: Optional[Notifier]):
        """Initialize all bot components."""
        try:
            chain = self.config['chain']
            dex_cfg = self.config['dexscreener']
            link_base = chain['link_base']

            self.rate_limiter = RateLimiter({
                key: dex_cfg[key] for key in ('rate', 'burst', 'limiter_timeout', 'cooldown_seconds')
            })
            self.criteria = CriteriaEngine(self.config['criteria'])
            self.connector = DexScreenerConnector(dex_cfg, rate_limiter=self.rate_limiter, criteria=self.criteria)
            self.notifier = notifier or LoggingNotifier()
            self.extractor = TokenExtractor(chain['native_mint'])

            self.image_resolver = None
            if self.config['helius'].get('api_key'):
                self.image_resolver = HeliusAssetResolver(self.config['helius'])

            self.dedup = DedupCache(self.config['dedup'].get('retention_seconds'), name='token_dedup')
            self.swap_dedup = DedupCache(self.config['dedup'].get('swap_retention_seconds'), name='swap_signatures')

            self.tracker = ProgressTracker(
                self.connector, self.notifier, {**self.config['progress'], 'link_base': link_base}
            )
            self.orchestrator = SignalOrchestrator(
                self.connector,
                self.dedup,
                self.notifier,
                self.tracker,
                image_resolver=self.image_resolver,
                extractor=self.extractor,
                config={'link_base': link_base},
            )

            volume_cfg = self.config['volume']
            self.volume_cache = VolumeCache({
                'retention_seconds': volume_cfg['retention_seconds'],
                'sweep_interval': volume_cfg['sweep_interval'],
            })
            self.swap_ingestor = SwapIngestor(self.volume_cache, self.swap_dedup, self.extractor)
            self.volume_trigger = VolumeTriggerMonitor(
                self.volume_cache,
                self.connector,
                self.notifier,
                {
                    'threshold': volume_cfg['threshold'],
                    'check_interval': volume_cfg['check_interval'],
                    'pacing_delay': volume_cfg['pacing_delay'],
                    'link_base': link_base,
                },
            )

            logger.info("All components initialized successfully")

        except Exception as e:
            logger.error(f"Error initializing components: {e}")
            raise

    async def start(self):
        """Start the background loops."""
        logger.info("Starting signal bot...")
        self._running = True
        self._stop_event.clear()
        await self.tracker.start()
        await self.volume_cache.start()
        await self.volume_trigger.start()
        logger.info("Signal bot started")

    async def stop(self):
        """Stop the background loops and close HTTP sessions."""
        try:
            logger.info("Stopping signal bot...")
            self._running = False

            await self.volume_trigger.stop()
            await self.volume_cache.stop()
            await self.tracker.stop()

            await self.connector.close()
            if self.image_resolver is not None:
                await self.image_resolver.close()
            await self.notifier.close()

            logger.info("Signal bot stopped")

        except Exception as e:
            logger.error(f"Error stopping signal bot: {e}")
        finally:
            self._stop_event.set()

    async def wait_closed(self):
        await self._stop_event.wait()

    async def handle_webhook(self, raw: Union[bytes, str, list, dict]) -> int:
        """Entry point for transaction webhooks. Never raises; returns signals sent."""
        try:
            return await self.orchestrator.handle_payload(raw)
        except PayloadError as e:
            logger.warning(f"Rejected webhook payload: {e}")
        except SignalError as e:
            logger.error(f"Webhook processing error: {e}")
        except Exception as e:
            logger.error(f"Unexpected error handling webhook: {e}")
        return 0

    async def handle_swap_webhook(self, raw: Union[bytes, str, list, dict]) -> Dict[str, int]:
        """Entry point for swap webhooks. Never raises; returns ingest counts."""
        try:
            return await self.swap_ingestor.handle_payload(raw)
        except PayloadError as e:
            logger.warning(f"Rejected swap webhook payload: {e}")
        except Exception as e:
            logger.error(f"Unexpected error handling swap webhook: {e}")
        return {}

    def _signal_handler(self, signum=None):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        asyncio.create_task(self.stop())

    async def get_status(self) -> Dict[str, Any]:
        """Get bot status."""
        return {
            'running': self._running,
            'cooldown_remaining': self.rate_limiter.cooldown.remaining(),
            'dedup_size': await self.dedup.size(),
            'tracked_tokens': await self.tracker.size(),
            'volume_cache_size': await self.volume_cache.size(),
            'signals_sent': self.orchestrator.signals_sent,
        }


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name, '').strip()
    return float(raw) if raw else None


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name, '').strip()
    return int(raw) if raw else None


def _config_from_env() -> Dict:
    """Build config dict from environment variables."""
    config: Dict = {}

    # DexScreener
    base_url = os.getenv('DEXSCREENER_BASE_URL', '').strip()
    cooldown = _env_float('DEXSCREENER_COOLDOWN_SECONDS')
    if base_url or cooldown is not None:
        config['dexscreener'] = {}
        if base_url:
            config['dexscreener']['base_url'] = base_url
        if cooldown is not None:
            config['dexscreener']['cooldown_seconds'] = cooldown

    # Criteria
    criteria: Dict[str, Any] = {}
    for env_name, key in (
        ('MIN_LIQUIDITY', 'min_liquidity'),
        ('MIN_MARKET_CAP', 'min_market_cap'),
        ('MAX_MARKET_CAP', 'max_market_cap'),
        ('MIN_VOLUME_5M', 'min_volume_5m'),
        ('MIN_VOLUME_1H', 'min_volume_1h'),
    ):
        value = _env_float(env_name)
        if value is not None:
            criteria[key] = value
    for env_name, key in (('MIN_TXNS_5M', 'min_txns_5m'), ('MIN_TXNS_1H', 'min_txns_1h')):
        value = _env_int(env_name)
        if value is not None:
            criteria[key] = value
    advanced = os.getenv('ADVANCED_FILTERS', '').strip().lower()
    if advanced in ('1', 'true', 'yes'):
        criteria['advanced_filters'] = True
    elif advanced in ('0', 'false', 'no'):
        criteria['advanced_filters'] = False
    if criteria:
        config['criteria'] = criteria

    # Dedup
    dedup_retention = _env_float('DEDUP_RETENTION_SECONDS')
    if dedup_retention is not None:
        config['dedup'] = {'retention_seconds': dedup_retention}

    # Progress tracking
    progress: Dict[str, Any] = {}
    interval = _env_float('PROGRESS_INTERVAL_SECONDS')
    if interval is not None:
        progress['check_interval'] = interval
    max_age = _env_float('PROGRESS_MAX_AGE_HOURS')
    if max_age is not None:
        progress['max_age_hours'] = max_age
    max_tracked = _env_int('PROGRESS_MAX_TRACKED')
    if max_tracked is not None:
        progress['max_tracked'] = max_tracked
    if progress:
        config['progress'] = progress

    # Volume trigger
    threshold = _env_float('VOLUME_THRESHOLD_USD')
    if threshold is not None:
        config['volume'] = {'threshold': threshold}

    # Helius
    helius_key = os.getenv('HELIUS_API_KEY', '').strip()
    helius_url = os.getenv('HELIUS_RPC_URL', '').strip()
    if helius_key or helius_url:
        config['helius'] = {}
        if helius_key:
            config['helius']['api_key'] = helius_key
        if helius_url:
            config['helius']['rpc_url'] = helius_url

    return config


async def main():
    """Main entry point."""
    configure_logging(os.getenv('LOG_LEVEL', 'INFO'))
    config = _config_from_env()

    bot = SignalBot(config if config else None)

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, bot._signal_handler, signum)
        except NotImplementedError:
            signal.signal(signum, lambda s, f: bot._signal_handler(s))

    try:
        await bot.start()
        await bot.wait_closed()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
    finally:
        await bot.stop()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
