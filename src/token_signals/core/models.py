"""Core data models for the signal pipeline."""

from datetime import datetime
from typing import Optional, List, Dict

from pydantic import BaseModel, ConfigDict, Field

REASON_NOT_FOUND = "not found"
REASON_NO_PAIRS = "no trading pairs"


class ValidationResult(BaseModel):
    """Point-in-time market check for a single token."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool = Field(description="True when every criterion passed")
    fail_reasons: List[str] = Field(default_factory=list, description="Human-readable failure reasons")

    # Identity
    pair_address: str = Field(default="", description="Authoritative trading pair address")
    token_name: str = Field(default="", description="Base token name")
    token_symbol: str = Field(default="", description="Base token symbol")

    # Market metrics
    liquidity_usd: float = Field(default=0.0, ge=0.0, description="Pool liquidity in USD")
    market_cap: float = Field(default=0.0, ge=0.0, description="Market cap, FDV when absent")
    volume_5m: float = Field(default=0.0, ge=0.0, description="5 minute volume in USD")
    volume_1h: float = Field(default=0.0, ge=0.0, description="1 hour volume in USD")

    # Transaction counts
    txns_5m: int = Field(default=0, ge=0, description="5 minute transaction count")
    txns_1h: int = Field(default=0, ge=0, description="1 hour transaction count")
    txns_5m_buys: int = Field(default=0, ge=0)
    txns_5m_sells: int = Field(default=0, ge=0)
    txns_1h_buys: int = Field(default=0, ge=0)
    txns_1h_sells: int = Field(default=0, ge=0)

    # Metadata (never affects pass/fail)
    website_url: str = Field(default="", description="First listed website")
    twitter_url: str = Field(default="")
    telegram_url: str = Field(default="")
    other_socials: Dict[str, str] = Field(default_factory=dict, description="Social name -> url")
    image_url: str = Field(default="", description="Image from the market-data record")
    pair_created_at: Optional[datetime] = Field(default=None, description="Pair creation time")

    @classmethod
    def not_found(cls) -> "ValidationResult":
        """Result for a token the market-data source does not know."""
        return cls(is_valid=False, fail_reasons=[REASON_NOT_FOUND])

    @classmethod
    def no_pairs(cls) -> "ValidationResult":
        """Result for a known token without trading pairs."""
        return cls(is_valid=False, fail_reasons=[REASON_NO_PAIRS])

    @property
    def has_market_data(self) -> bool:
        """False for not-found and no-pairs outcomes."""
        return not (
            not self.is_valid
            and self.fail_reasons in ([REASON_NOT_FOUND], [REASON_NO_PAIRS])
        )

    @property
    def display_name(self) -> str:
        """Best available label for notifications."""
        if self.token_name and self.token_symbol:
            return f"{self.token_name} ({self.token_symbol})"
        return self.token_name or self.token_symbol
