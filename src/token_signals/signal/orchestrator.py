"""Webhook-driven signal pipeline: extract, claim, validate, notify, track."""

from typing import Any, Dict, Optional, Tuple, Union
import logging

from ..cache.dedup import DedupCache
from ..core.enums import ImageSource
from ..core.errors import SignalError, ValidationClientError
from ..core.models import ValidationResult
from ..data.connector import MarketDataConnector
from ..events.extractor import TokenExtractor, decode_payload
from ..notify.assets import AssetImageResolver
from ..notify.messages import format_signal_message, icon_status, is_http_url
from ..notify.notifier import Notifier
from ..tracking.progress import ProgressTracker

logger = logging.getLogger(__name__)


class SignalOrchestrator:
    """
    Turns transaction webhook events into token signals.

    Per event:
    1. Extract the first non-native mint; nothing to do when absent.
    2. Claim the token in the dedup cache; each token is processed at most once.
    3. Validate against market data. Errors release the claim and propagate
       so a redelivery can retry.
    4. Valid tokens are announced (photo when a usable image URL exists) and
       registered with the progress tracker.
    """

    def __init__(
        self,
        connector: MarketDataConnector,
        dedup: DedupCache,
        notifier: Notifier,
        tracker: ProgressTracker,
        image_resolver: Optional[AssetImageResolver] = None,
        extractor: Optional[TokenExtractor] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        self.connector = connector
        self.dedup = dedup
        self.notifier = notifier
        self.tracker = tracker
        self.image_resolver = image_resolver
        self.extractor = extractor or TokenExtractor()
        self.signals_sent = 0
        logger.info(f"Signal orchestrator initialized (image lookup: {image_resolver is not None})")

    def _default_config(self) -> Dict[str, Any]:
        return {
            "link_base": "https://dexscreener.com/solana",
        }

    async def handle_event(self, event: Dict[str, Any]) -> bool:
        """Process one event. True when a signal was dispatched."""
        token, found = self.extractor.extract(event)
        if not found:
            logger.debug("No relevant non-native token in event")
            return False

        if not await self.dedup.try_claim(token):
            logger.info(f"Token {token} already processed, skipping")
            return False

        try:
            result = await self.connector.validate(token)
        except ValidationClientError as e:
            await self.dedup.release(token)
            logger.error(f"Validation failed for {token}, claim released: {e}")
            raise
        except Exception as e:
            await self.dedup.release(token)
            logger.error(f"Unexpected error validating {token}, claim released: {e!r}")
            raise

        if not result.is_valid:
            logger.info(f"Token {token} rejected: {'; '.join(result.fail_reasons)}")
            return False

        logger.info(f"Token {token} passed validation, preparing signal")
        await self._dispatch(token, result)

        if result.market_cap > 0 and not await self.tracker.is_tracked(token):
            await self.tracker.register(token, result.market_cap, token_name=result.display_name)

        return True

    async def handle_payload(self, raw: Union[bytes, str, list, dict]) -> int:
        """Process every event in a webhook body.

        Per-event errors do not stop the batch; the first one is raised after all
        events were handled. Returns the number of signals dispatched.
        """
        events = decode_payload(raw)
        dispatched = 0
        first_error: Optional[Exception] = None

        for event in events:
            try:
                if await self.handle_event(event):
                    dispatched += 1
            except SignalError as e:
                logger.warning(f"Event processing failed: {e}")
                if first_error is None:
                    first_error = e
            except Exception as e:
                logger.error(f"Unexpected error processing event: {e!r}")
                if first_error is None:
                    first_error = e

        logger.info(f"Webhook batch complete: {len(events)} events, {dispatched} signals")
        if first_error is not None:
            raise first_error
        return dispatched

    async def _select_image(self, token: str, result: ValidationResult) -> Tuple[str, str]:
        """Pick the image for a signal. Returns ``(url, icon status)``."""
        url = ""
        source = ImageSource.NONE
        record_invalid = False

        if result.image_url:
            if is_http_url(result.image_url):
                url, source = result.image_url, ImageSource.MARKET_DATA
            else:
                logger.warning(f"Invalid image URL from market data for {token}: {result.image_url}")
                record_invalid = True

        if self.image_resolver is not None:
            try:
                asset_url, asset_source = await self.image_resolver.resolve_image(token)
                if asset_url and is_http_url(asset_url):
                    url, source = asset_url, asset_source
                elif asset_url:
                    logger.warning(f"Invalid image URL from asset lookup for {token}: {asset_url}")
            except Exception as e:
                logger.warning(f"Asset image lookup failed for {token}, using market-data image: {e}")

        return url, icon_status(source, record_url_invalid=record_invalid)

    async def _dispatch(self, token: str, result: ValidationResult) -> None:
        image_url, icon = await self._select_image(token, result)
        message = format_signal_message(token, result, icon, link_base=self.config["link_base"])
        try:
            if is_http_url(image_url):
                await self.notifier.send_photo_signal(image_url, message)
                logger.info(f"Photo signal sent for {token} ({image_url})")
            else:
                await self.notifier.send_text_signal(message)
                logger.info(f"Text signal sent for {token}")
            self.signals_sent += 1
        except Exception as e:
            logger.error(f"Failed to deliver signal for {token}: {e}")
