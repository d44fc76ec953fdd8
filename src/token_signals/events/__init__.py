"""Webhook event decoding and token extraction."""

from .extractor import (
    TokenExtractor, extract_token, decode_payload, get_field, get_path,
    FieldLookup, FieldState, NATIVE_MINT,
)

__all__ = [
    "TokenExtractor",
    "extract_token",
    "decode_payload",
    "get_field",
    "get_path",
    "FieldLookup",
    "FieldState",
    "NATIVE_MINT",
]
