"""Exception hierarchy for the signal pipeline."""


class SignalError(Exception):
    """Base class for all signal pipeline errors."""
    pass


class PayloadError(SignalError):
    """Raised when a webhook payload cannot be decoded."""
    pass


class ValidationClientError(SignalError):
    """Raised when the market-data validation client cannot produce a result."""

    def __init__(self, message: str, token: str = ""):
        super().__init__(message)
        self.token = token


class MarketDataError(ValidationClientError):
    """Transport or HTTP failure that survived every retry."""
    pass


class MarketDataParseError(MarketDataError):
    """Market-data response body could not be parsed."""
    pass


class RateLimitedError(ValidationClientError):
    """Upstream kept answering 429; the global cooldown has been armed."""
    pass


class LimiterTimeoutError(ValidationClientError):
    """Local rate limiter did not admit the call within its wait bound."""
    pass


class AssetLookupError(SignalError):
    """On-chain asset lookup failed after its retries."""
    pass
