"""Core enumerations for the signal pipeline."""

from enum import Enum


class ImageSource(str, Enum):
    """Where the image attached to a signal came from."""
    ASSET_FILES = "asset_files"
    ASSET_LINKS = "asset_links"
    MARKET_DATA = "market_data"
    NONE = "none"


class DeliveryKind(str, Enum):
    """Notification delivery kinds."""
    TEXT = "text"
    PHOTO = "photo"
    MILESTONE = "milestone"
