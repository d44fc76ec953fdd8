"""Pydantic models for DexScreener token-pair records."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PairToken(BaseModel):
    """Base or quote token of a pair."""

    address: str = ""
    name: Optional[str] = None
    symbol: Optional[str] = None


class TxnCounts(BaseModel):
    """Buy/sell counts for one time window."""

    buys: int = 0
    sells: int = 0

    @property
    def total(self) -> int:
        return self.buys + self.sells


class Liquidity(BaseModel):
    usd: Optional[float] = None
    base: Optional[float] = None
    quote: Optional[float] = None


class WebsiteLink(BaseModel):
    label: Optional[str] = None
    url: str = ""


class SocialLink(BaseModel):
    type: str = ""
    url: str = ""


class PairInfo(BaseModel):
    """Optional metadata block of a pair."""

    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    header: Optional[str] = None
    open_graph: Optional[str] = Field(default=None, alias="openGraph")
    websites: List[WebsiteLink] = Field(default_factory=list)
    socials: List[SocialLink] = Field(default_factory=list)


class PairRecord(BaseModel):
    """One trading pair as returned by ``/tokens/v1/{chain}/{address}``."""

    model_config = ConfigDict(populate_by_name=True)

    chain_id: str = Field(default="", alias="chainId")
    dex_id: str = Field(default="", alias="dexId")
    url: str = ""
    pair_address: str = Field(default="", alias="pairAddress")
    base_token: PairToken = Field(default_factory=PairToken, alias="baseToken")
    quote_token: PairToken = Field(default_factory=PairToken, alias="quoteToken")
    price_native: Optional[str] = Field(default=None, alias="priceNative")
    price_usd: Optional[str] = Field(default=None, alias="priceUsd")
    txns: Dict[str, TxnCounts] = Field(default_factory=dict)
    volume: Dict[str, Optional[float]] = Field(default_factory=dict)
    price_change: Dict[str, Optional[float]] = Field(default_factory=dict, alias="priceChange")
    liquidity: Optional[Liquidity] = None
    fdv: Optional[float] = None
    market_cap: Optional[float] = Field(default=None, alias="marketCap")
    pair_created_at: Optional[int] = Field(default=None, alias="pairCreatedAt")
    info: Optional[PairInfo] = None

    def liquidity_usd(self) -> float:
        if self.liquidity is None or self.liquidity.usd is None:
            return 0.0
        return max(0.0, self.liquidity.usd)

    def effective_market_cap(self) -> float:
        """Market cap, falling back to FDV when market cap is absent or zero."""
        if self.market_cap and self.market_cap > 0:
            return self.market_cap
        return max(0.0, self.fdv or 0.0)

    def window_volume(self, window: str) -> float:
        return max(0.0, self.volume.get(window) or 0.0)

    def window_txns(self, window: str) -> TxnCounts:
        return self.txns.get(window) or TxnCounts()

    def created_at(self) -> Optional[datetime]:
        """Pair creation time (the API reports Unix milliseconds)."""
        if not self.pair_created_at:
            return None
        try:
            return datetime.fromtimestamp(self.pair_created_at / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
