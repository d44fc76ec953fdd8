"""Market data module."""

from .connector import MarketDataConnector, DexScreenerConnector
from .models import PairRecord, PairInfo, PairToken, TxnCounts
from .rate_limiter import RateLimiter, TokenBucket, CooldownGate

__all__ = [
    "MarketDataConnector",
    "DexScreenerConnector",
    "PairRecord",
    "PairInfo",
    "PairToken",
    "TxnCounts",
    "RateLimiter",
    "TokenBucket",
    "CooldownGate",
]
