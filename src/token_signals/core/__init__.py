"""Core module for the signal pipeline."""

from .models import ValidationResult, REASON_NOT_FOUND, REASON_NO_PAIRS
from .enums import ImageSource, DeliveryKind
from .errors import (
    SignalError, PayloadError, ValidationClientError, MarketDataError,
    MarketDataParseError, RateLimitedError, LimiterTimeoutError, AssetLookupError,
)
from .state_lock import StateLock, ReadWriteStateLock

__all__ = [
    "ValidationResult",
    "REASON_NOT_FOUND",
    "REASON_NO_PAIRS",
    "ImageSource",
    "DeliveryKind",
    "SignalError",
    "PayloadError",
    "ValidationClientError",
    "MarketDataError",
    "MarketDataParseError",
    "RateLimitedError",
    "LimiterTimeoutError",
    "AssetLookupError",
    "StateLock",
    "ReadWriteStateLock",
]
