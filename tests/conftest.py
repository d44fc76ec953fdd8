"""Pytest configuration and fixtures."""

import json
from typing import Any, Dict, List, Optional

import pytest

from token_signals.core.models import ValidationResult


class FakeResponse:
    """Stand-in for an aiohttp response used inside ``async with``."""

    def __init__(self, status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None):
        self.status = status
        if body is None:
            body = ""
        self._body = body if isinstance(body, (str, bytes)) else json.dumps(body)
        self.headers = headers or {}

    async def text(self) -> str:
        if isinstance(self._body, bytes):
            return self._body.decode("utf-8")
        return self._body

    async def json(self) -> Any:
        return json.loads(await self.text())


class _RequestContext:
    def __init__(self, outcome):
        self._outcome = outcome

    async def __aenter__(self):
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Scripted aiohttp session: each request consumes the next outcome.

    An outcome is a :class:`FakeResponse` or an exception to raise. The last
    outcome repeats once the script runs out.
    """

    def __init__(self, outcomes: List[Any]):
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def _next(self):
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]

    def get(self, url, **kwargs):
        self.calls.append({"method": "GET", "url": url, **kwargs})
        return _RequestContext(self._next())

    def post(self, url, **kwargs):
        self.calls.append({"method": "POST", "url": url, **kwargs})
        return _RequestContext(self._next())

    async def close(self):
        self.closed = True


class ScriptedConnector:
    """Market-data connector returning scripted results per token."""

    def __init__(self, results: Optional[Dict[str, List[Any]]] = None):
        self.results = {token: list(seq) for token, seq in (results or {}).items()}
        self.calls: List[str] = []

    def script(self, token: str, *outcomes):
        self.results.setdefault(token, []).extend(outcomes)

    async def validate(self, token: str) -> ValidationResult:
        self.calls.append(token)
        queue = self.results.get(token)
        if not queue:
            return ValidationResult.not_found()
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        pass


def build_pair(
    address: str = "TokenMint1111",
    name: str = "Test Token",
    symbol: str = "TEST",
    liquidity: Optional[float] = 50000.0,
    market_cap: Optional[float] = 100000.0,
    fdv: Optional[float] = 120000.0,
    volume_5m: float = 2000.0,
    volume_1h: float = 20000.0,
    txns_5m: tuple = (80, 70),
    txns_1h: tuple = (400, 350),
    info: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """DexScreener pair record that passes the default criteria."""
    pair = {
        "chainId": "solana",
        "dexId": "raydium",
        "url": f"https://dexscreener.com/solana/{address}",
        "pairAddress": f"Pair{address}",
        "baseToken": {"address": address, "name": name, "symbol": symbol},
        "quoteToken": {"address": "So11111111111111111111111111111111111111112", "name": "Wrapped SOL", "symbol": "SOL"},
        "priceNative": "0.0001",
        "priceUsd": "0.02",
        "txns": {
            "m5": {"buys": txns_5m[0], "sells": txns_5m[1]},
            "h1": {"buys": txns_1h[0], "sells": txns_1h[1]},
        },
        "volume": {"m5": volume_5m, "h1": volume_1h},
        "priceChange": {"m5": 1.5, "h1": 12.0},
        "liquidity": {"usd": liquidity, "base": 1000000, "quote": 150} if liquidity is not None else None,
        "fdv": fdv,
        "marketCap": market_cap,
        "pairCreatedAt": 1700000000000,
    }
    if info is not None:
        pair["info"] = info
    return pair


def swap_event(mint: str, signature: str = "", usd_value: Any = None) -> Dict[str, Any]:
    event: Dict[str, Any] = {
        "type": "SWAP",
        "tokenTransfers": [
            {"mint": "So11111111111111111111111111111111111111112", "tokenAmount": 1.5},
            {"mint": mint, "tokenAmount": 1000},
        ],
    }
    if signature:
        event["signature"] = signature
    if usd_value is not None:
        event["usdValue"] = usd_value
    return event


def valid_result(market_cap: float = 100000.0, **overrides) -> ValidationResult:
    fields = dict(
        is_valid=True,
        fail_reasons=[],
        pair_address="PairAddr",
        token_name="Test Token",
        token_symbol="TEST",
        liquidity_usd=50000.0,
        market_cap=market_cap,
        volume_5m=2000.0,
        volume_1h=20000.0,
        txns_5m=150,
        txns_1h=750,
    )
    fields.update(overrides)
    return ValidationResult(**fields)


def failing_result(market_cap: float = 10000.0, reasons=None) -> ValidationResult:
    return ValidationResult(
        is_valid=False,
        fail_reasons=reasons or [f"MarketCap {market_cap:.0f} < 50000"],
        token_name="Weak Token",
        token_symbol="WEAK",
        liquidity_usd=50000.0,
        market_cap=market_cap,
    )


@pytest.fixture
def make_pair():
    return build_pair


@pytest.fixture
def make_swap_event():
    return swap_event


@pytest.fixture
def make_valid_result():
    return valid_result


@pytest.fixture
def make_failing_result():
    return failing_result


@pytest.fixture
def fake_session():
    """Factory for scripted aiohttp sessions."""
    return lambda *outcomes: FakeSession(list(outcomes))


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def scripted_connector():
    return ScriptedConnector()


@pytest.fixture
def fast_limiter_config():
    """Rate limiter settings that never hold a test up."""
    return {"rate": 1000.0, "burst": 100, "limiter_timeout": 1.0, "cooldown_seconds": 0.2}
