"""Notification boundary, message formatting and image lookup."""

from .notifier import Notifier, LoggingNotifier, Delivery
from .assets import AssetImageResolver, HeliusAssetResolver
from .messages import (
    format_signal_message, format_milestone_message, format_volume_trigger_message,
    format_criteria_details, format_socials, icon_status, is_http_url, dexscreener_link,
)

__all__ = [
    "Notifier",
    "LoggingNotifier",
    "Delivery",
    "AssetImageResolver",
    "HeliusAssetResolver",
    "format_signal_message",
    "format_milestone_message",
    "format_volume_trigger_message",
    "format_criteria_details",
    "format_socials",
    "icon_status",
    "is_http_url",
    "dexscreener_link",
]
