"""Market-data validation client interface and the DexScreener implementation."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import asyncio
import json
import logging

import aiohttp
from pydantic import ValidationError

from ..core.errors import MarketDataError, MarketDataParseError, RateLimitedError
from ..core.models import ValidationResult
from ..screening.criteria import CriteriaEngine
from .models import PairRecord
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class MarketDataConnector(ABC):
    """Abstract base class for market-data validation clients."""

    @abstractmethod
    async def validate(self, token: str) -> ValidationResult:
        """Fetch market data for *token* and screen it.

        Not-found and no-pairs outcomes are results; transport, throttling and
        parse failures raise :class:`ValidationClientError` subclasses.
        """
        pass

    @abstractmethod
    async def close(self):
        """Close connection."""
        pass


class DexScreenerConnector(MarketDataConnector):
    """Rate-limited, retrying DexScreener client.

    Every attempt passes through the shared :class:`RateLimiter`. HTTP 429 on the
    final attempt arms the limiter's global cooldown.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        rate_limiter: Optional[RateLimiter] = None,
        criteria: Optional[CriteriaEngine] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        self.base_url = self.config["base_url"].rstrip("/")
        self.rate_limiter = rate_limiter or RateLimiter({
            key: self.config[key]
            for key in ("rate", "burst", "limiter_timeout", "cooldown_seconds")
        })
        self.criteria = criteria or CriteriaEngine()
        self._session = session
        self._owns_session = session is None
        logger.info(f"DexScreener connector initialized ({self.base_url}, {self.config['max_retries']} attempts)")

    @staticmethod
    def _default_config() -> Dict[str, Any]:
        return {
            "base_url": "https://api.dexscreener.com/tokens/v1/solana",
            "timeout": 10,
            "max_retries": 3,
            "backoff_base": 1.0,
            "max_retry_after": 60.0,
            "rate": 4.66,
            "burst": 5,
            "limiter_timeout": 15.0,
            "cooldown_seconds": 100.0,
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config["timeout"])
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the HTTP session if this connector created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def validate(self, token: str) -> ValidationResult:
        max_retries = max(1, int(self.config["max_retries"]))
        url = f"{self.base_url}/{token}"
        last_error = ""
        last_rate_limited = False

        for attempt in range(max_retries):
            await self.rate_limiter.acquire(token)
            session = await self._get_session()
            delay = self._backoff(attempt)
            last_rate_limited = False

            try:
                async with session.get(url) as response:
                    status = response.status
                    if status == 200:
                        try:
                            body = await response.text()
                        except UnicodeDecodeError as e:
                            logger.error(f"DexScreener body for {token} could not be decoded: {e}")
                            raise MarketDataParseError(f"Undecodable response body for {token}: {e}", token=token) from e
                        return self._build_result(token, body)
                    if status == 404:
                        logger.info(f"Token {token} not found on DexScreener")
                        return ValidationResult.not_found()
                    if status == 429:
                        last_rate_limited = True
                        last_error = "rate limited (429)"
                        delay = self._retry_after(response.headers.get("Retry-After"), attempt)
                        logger.warning(
                            f"DexScreener rate limit hit for {token} "
                            f"(attempt {attempt + 1}/{max_retries}, retry in {delay:.1f}s)"
                        )
                    else:
                        body = await response.text()
                        last_error = f"non-OK status {status}: {body[:200]}"
                        logger.warning(
                            f"DexScreener {last_error} for {token} (attempt {attempt + 1}/{max_retries})"
                        )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = f"request failed: {e!r}"
                logger.warning(f"DexScreener request for {token} failed (attempt {attempt + 1}/{max_retries}): {e!r}")

            if attempt < max_retries - 1:
                await asyncio.sleep(delay)

        if last_rate_limited:
            await self.rate_limiter.trip()
            logger.error(f"DexScreener still rate limiting after {max_retries} attempts for {token}")
            raise RateLimitedError(f"DexScreener rate limit exceeded for {token}", token=token)

        logger.error(f"Failed to get DexScreener response for {token} after {max_retries} attempts: {last_error}")
        raise MarketDataError(f"DexScreener request failed for {token}: {last_error}", token=token)

    def _backoff(self, attempt: int) -> float:
        return self.config["backoff_base"] * (2 ** attempt)

    def _retry_after(self, header: Optional[str], attempt: int) -> float:
        """Seconds to wait after a 429: Retry-After when usable, else backoff, capped."""
        wait = None
        if header:
            try:
                seconds = int(header.strip())
                if seconds > 0:
                    wait = float(seconds)
            except ValueError:
                pass
        if wait is None:
            wait = self._backoff(attempt)
        return min(wait, float(self.config["max_retry_after"]))

    def _build_result(self, token: str, body: str) -> ValidationResult:
        pairs = self._parse_pairs(token, body)
        if not pairs:
            logger.info(f"Token {token} found but has no trading pairs")
            return ValidationResult.no_pairs()

        try:
            pair = PairRecord.model_validate(pairs[0])
            metrics = self._extract_metrics(pair)
        except (ValidationError, TypeError, ValueError, AttributeError) as e:
            raise MarketDataParseError(f"Malformed pair record for {token}: {e}", token=token) from e

        is_valid, reasons = self.criteria.evaluate(metrics)
        if is_valid:
            logger.debug(f"Token {token} passed all validation criteria")
        else:
            logger.info(f"Token {token} failed validation criteria: {reasons}")

        try:
            return ValidationResult(is_valid=is_valid, fail_reasons=reasons, **metrics)
        except ValidationError as e:
            raise MarketDataParseError(f"Invalid metrics for {token}: {e}", token=token) from e

    def _parse_pairs(self, token: str, body: str) -> List[Any]:
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            logger.error(f"DexScreener JSON parsing failed for {token}: {e}")
            raise MarketDataParseError(f"JSON parsing failed for {token}: {e}", token=token) from e

        if isinstance(data, dict) and "pairs" in data:
            data = data["pairs"] or []
        if not isinstance(data, list):
            raise MarketDataParseError(
                f"Unexpected DexScreener response shape for {token}: {type(data).__name__}",
                token=token,
            )
        return data

    def _extract_metrics(self, pair: PairRecord) -> Dict[str, Any]:
        txns_5m = pair.window_txns("m5")
        txns_1h = pair.window_txns("h1")
        metrics: Dict[str, Any] = {
            "pair_address": pair.pair_address,
            "token_name": pair.base_token.name or "",
            "token_symbol": pair.base_token.symbol or "",
            "liquidity_usd": pair.liquidity_usd(),
            "market_cap": pair.effective_market_cap(),
            "volume_5m": pair.window_volume("m5"),
            "volume_1h": pair.window_volume("h1"),
            "txns_5m": max(0, txns_5m.total),
            "txns_1h": max(0, txns_1h.total),
            "txns_5m_buys": max(0, txns_5m.buys),
            "txns_5m_sells": max(0, txns_5m.sells),
            "txns_1h_buys": max(0, txns_1h.buys),
            "txns_1h_sells": max(0, txns_1h.sells),
            "pair_created_at": pair.created_at(),
            "website_url": "",
            "twitter_url": "",
            "telegram_url": "",
            "other_socials": {},
            "image_url": "",
        }

        if pair.info is not None:
            metrics["image_url"] = pair.info.image_url or ""
            if pair.info.websites:
                metrics["website_url"] = pair.info.websites[0].url
            for social in pair.info.socials:
                kind = social.type.lower()
                if kind == "twitter":
                    metrics["twitter_url"] = social.url
                elif kind == "telegram":
                    metrics["telegram_url"] = social.url
                elif kind:
                    metrics["other_socials"][kind.title()] = social.url

        logger.debug(
            f"DexScreener data for {pair.base_token.address or pair.pair_address}: "
            f"liq={metrics['liquidity_usd']:.0f} mc={metrics['market_cap']:.0f} "
            f"vol5m={metrics['volume_5m']:.0f} vol1h={metrics['volume_1h']:.0f} "
            f"tx5m={metrics['txns_5m']} tx1h={metrics['txns_1h']}"
        )
        return metrics
