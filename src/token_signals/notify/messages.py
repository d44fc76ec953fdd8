"""Plain-text notification bodies.

Messages are raw, unescaped text; escaping for a chat transport's markup is the
transport's job.
"""

from typing import List
from urllib.parse import urlparse

from ..core.enums import ImageSource
from ..core.models import ValidationResult

DEXSCREENER_LINK_BASE = "https://dexscreener.com/solana"

ICON_STATUS = {
    ImageSource.ASSET_FILES: "✅ Icon Found (Asset Files)",
    ImageSource.ASSET_LINKS: "✅ Icon Found (Asset Links)",
    ImageSource.MARKET_DATA: "⚠️ Icon from DexScreener",
    ImageSource.NONE: "❌ Icon Missing",
}
ICON_URL_INVALID = "❌ Icon URL Invalid"


def is_http_url(url: str) -> bool:
    """True for an absolute http(s) URL with a host."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def dexscreener_link(token: str, base: str = DEXSCREENER_LINK_BASE) -> str:
    return f"{base.rstrip('/')}/{token}"


def icon_status(source: ImageSource, record_url_invalid: bool = False) -> str:
    if source is ImageSource.NONE and record_url_invalid:
        return ICON_URL_INVALID
    return ICON_STATUS[source]


def format_criteria_details(result: ValidationResult) -> str:
    return "\n".join([
        f"🩸 Liquidity: ${result.liquidity_usd:,.0f}",
        f"🏛️ Market Cap: ${result.market_cap:,.0f}",
        f"⌛ (5m) Volume: ${result.volume_5m:,.0f}",
        f"⏳ (1h) Volume: ${result.volume_1h:,.0f}",
        f"🔎 (5m) TXNs: {result.txns_5m}",
        f"🔍 (1h) TXNs: {result.txns_1h}",
    ])


def format_socials(result: ValidationResult) -> str:
    """Socials block, empty when the record lists none."""
    lines: List[str] = []
    if result.website_url:
        lines.append(f"🌐 Website: {result.website_url}")
    if result.twitter_url:
        lines.append(f"🐦 Twitter: {result.twitter_url}")
    if result.telegram_url:
        lines.append(f"✈️ Telegram: {result.telegram_url}")
    for name in sorted(result.other_socials):
        url = result.other_socials[name]
        if not url:
            continue
        emoji = "📰" if "medium" in name.lower() else "🔗"
        lines.append(f"{emoji} {name}: {url}")
    if not lines:
        return ""
    return "--- Socials ---\n" + "\n".join(lines)


def format_signal_message(
    token: str,
    result: ValidationResult,
    icon: str,
    link_base: str = DEXSCREENER_LINK_BASE,
) -> str:
    """Body of a validated-token signal."""
    header = "Token Validated! 🚀"
    if result.display_name:
        header = f"{header}\n{result.display_name}"
    parts = [
        header,
        f"CA: {token}\nIcon: {icon}",
        f"DexScreener: {dexscreener_link(token, link_base)}",
        "--- Criteria Met ---\n" + format_criteria_details(result),
    ]
    socials = format_socials(result)
    if socials:
        parts.append(socials)
    return "\n\n".join(parts)


def format_milestone_message(
    token: str,
    level: int,
    baseline_market_cap: float,
    highest_market_cap: float,
    token_name: str = "",
    link_base: str = DEXSCREENER_LINK_BASE,
) -> str:
    """Body of a market-cap multiple milestone update."""
    label = f"{token_name} ({token})" if token_name else token
    return (
        f"🚀 Token {label}\n\n"
        f"hit: {level}x\n\n"
        f"Initial marketcap: ${baseline_market_cap:,.0f}\n"
        f"ATH marketcap: ${highest_market_cap:,.0f}\n\n"
        f"DexScreener: {dexscreener_link(token, link_base)}"
    )


def format_volume_trigger_message(
    token: str,
    total_volume: float,
    result: ValidationResult,
    link_base: str = DEXSCREENER_LINK_BASE,
) -> str:
    """Body of a signal raised by accumulated swap volume."""
    header = "✅ Validated Swap Token (Volume Check)"
    if result.display_name:
        header = f"{header}\n{result.display_name}"
    return (
        f"{header}\n\n"
        f"CA: {token}\n"
        f"Volume Trigger: ${total_volume:,.2f}\n\n"
        f"DexScreener: {dexscreener_link(token, link_base)}\n\n"
        f"--- Criteria Met ---\n{format_criteria_details(result)}"
    )
