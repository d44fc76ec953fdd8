"""Token extraction from loosely-structured transaction webhook events."""

from dataclasses import dataclass
from enum import Enum
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..core.errors import PayloadError

logger = logging.getLogger(__name__)

NATIVE_MINT = "So11111111111111111111111111111111111111112"


class FieldState(str, Enum):
    """Outcome of looking up a key in decoded JSON."""
    MISSING = "missing"
    WRONG_TYPE = "wrong_type"
    PRESENT = "present"


@dataclass(frozen=True)
class FieldLookup:
    """A looked-up JSON value together with how the lookup went."""

    state: FieldState
    value: Any = None

    @property
    def present(self) -> bool:
        return self.state is FieldState.PRESENT


def get_field(obj: Any, key: str, expected_type: Union[type, Tuple[type, ...]]) -> FieldLookup:
    """Look up *key* in *obj* and check the value's type."""
    if not isinstance(obj, dict) or key not in obj:
        return FieldLookup(FieldState.MISSING)
    value = obj[key]
    # bool is an int subclass; never accept it where a number is expected
    if isinstance(value, bool) and bool not in _as_tuple(expected_type):
        return FieldLookup(FieldState.WRONG_TYPE, value)
    if not isinstance(value, expected_type):
        return FieldLookup(FieldState.WRONG_TYPE, value)
    return FieldLookup(FieldState.PRESENT, value)


def get_path(obj: Any, path: Iterable[str], expected_type: Union[type, Tuple[type, ...]]) -> FieldLookup:
    """Walk nested objects along *path*; intermediate nodes must be objects."""
    keys = list(path)
    node = obj
    for key in keys[:-1]:
        lookup = get_field(node, key, dict)
        if not lookup.present:
            return lookup
        node = lookup.value
    return get_field(node, keys[-1], expected_type)


def _as_tuple(expected_type) -> Tuple[type, ...]:
    return expected_type if isinstance(expected_type, tuple) else (expected_type,)


class TokenExtractor:
    """Pulls the first non-native token mint out of a webhook event.

    Lookup order, first match wins:
    1. ``tokenTransfers[*].mint``
    2. ``events.swap.tokenOutputs[*].mint``
    3. ``events.swap.tokenInputs[*].mint``
    """

    SEARCH_PATHS = (
        ("tokenTransfers",),
        ("events", "swap", "tokenOutputs"),
        ("events", "swap", "tokenInputs"),
    )

    def __init__(self, native_mint: str = NATIVE_MINT):
        self.native_mint = native_mint

    def extract(self, event: Dict[str, Any]) -> Tuple[str, bool]:
        """Return ``(mint, True)`` for the first acceptable mint, else ``("", False)``."""
        for path in self.SEARCH_PATHS:
            entries = get_path(event, path, list)
            if not entries.present:
                if entries.state is FieldState.WRONG_TYPE:
                    logger.debug(f"Ignoring {'.'.join(path)}: expected a list")
                continue
            mint = self._first_acceptable_mint(entries.value)
            if mint:
                return mint, True
        return "", False

    def _first_acceptable_mint(self, entries: List[Any]) -> Optional[str]:
        for entry in entries:
            mint = get_field(entry, "mint", str)
            if mint.present and mint.value and mint.value != self.native_mint:
                return mint.value
        return None


def extract_token(event: Dict[str, Any], native_mint: str = NATIVE_MINT) -> Tuple[str, bool]:
    """Module-level shortcut for :meth:`TokenExtractor.extract`."""
    return TokenExtractor(native_mint).extract(event)


def decode_payload(raw: Union[bytes, str, list, dict]) -> List[Dict[str, Any]]:
    """Decode a webhook body into a list of event objects.

    A JSON array yields its object elements, a JSON object yields a single-element
    list. Anything else raises :class:`PayloadError`.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PayloadError(f"Webhook payload is not valid UTF-8: {e}") from e

    if isinstance(raw, str):
        if not raw.strip():
            raise PayloadError("Empty webhook payload")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PayloadError(f"Webhook payload is not valid JSON: {e}") from e
    else:
        data = raw

    if isinstance(data, dict):
        return [data]

    if isinstance(data, list):
        events = []
        for index, item in enumerate(data):
            if isinstance(item, dict):
                events.append(item)
            else:
                logger.warning(f"Skipping non-object element at index {index} in webhook payload")
        return events

    raise PayloadError(f"Webhook payload must be a JSON object or array, got {type(data).__name__}")
