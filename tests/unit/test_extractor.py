"""Unit tests for webhook token extraction and payload decoding."""

import pytest

from token_signals.core.errors import PayloadError
from token_signals.events.extractor import (
    FieldState, NATIVE_MINT, TokenExtractor, decode_payload, extract_token, get_field, get_path,
)


class TestFieldAccess:
    """Tests for typed JSON accessors."""

    def test_missing_key(self):
        assert get_field({"a": 1}, "b", int).state is FieldState.MISSING

    def test_non_object_is_missing(self):
        assert get_field(["a"], "a", str).state is FieldState.MISSING

    def test_wrong_type(self):
        lookup = get_field({"mint": 5}, "mint", str)
        assert lookup.state is FieldState.WRONG_TYPE
        assert lookup.value == 5

    def test_bool_is_not_a_number(self):
        assert get_field({"usdValue": True}, "usdValue", (int, float)).state is FieldState.WRONG_TYPE

    def test_present(self):
        lookup = get_field({"mint": "abc"}, "mint", str)
        assert lookup.present
        assert lookup.value == "abc"

    def test_path_through_wrong_intermediate(self):
        event = {"events": {"swap": "not-an-object"}}
        lookup = get_path(event, ("events", "swap", "tokenOutputs"), list)
        assert lookup.state is FieldState.WRONG_TYPE


class TestTokenExtractor:
    """Tests for mint extraction precedence and native-asset exclusion."""

    def setup_method(self):
        self.extractor = TokenExtractor()

    def test_token_transfers_win(self):
        event = {
            "tokenTransfers": [{"mint": "MintA"}],
            "events": {"swap": {"tokenOutputs": [{"mint": "MintB"}], "tokenInputs": [{"mint": "MintC"}]}},
        }
        assert self.extractor.extract(event) == ("MintA", True)

    def test_outputs_before_inputs(self):
        event = {"events": {"swap": {"tokenOutputs": [{"mint": "MintB"}], "tokenInputs": [{"mint": "MintC"}]}}}
        assert self.extractor.extract(event) == ("MintB", True)

    def test_inputs_last(self):
        event = {"events": {"swap": {"tokenInputs": [{"mint": "MintC"}]}}}
        assert self.extractor.extract(event) == ("MintC", True)

    def test_native_mint_skipped(self):
        event = {"tokenTransfers": [{"mint": NATIVE_MINT}, {"mint": "MintA"}]}
        assert self.extractor.extract(event) == ("MintA", True)

    def test_only_native_falls_through_to_swap(self):
        event = {
            "tokenTransfers": [{"mint": NATIVE_MINT}],
            "events": {"swap": {"tokenOutputs": [{"mint": "MintB"}]}},
        }
        assert self.extractor.extract(event) == ("MintB", True)

    def test_only_native_not_found(self):
        event = {"tokenTransfers": [{"mint": NATIVE_MINT}]}
        assert self.extractor.extract(event) == ("", False)

    def test_empty_and_malformed_entries_ignored(self):
        event = {"tokenTransfers": [{"mint": ""}, {"mint": 42}, "junk", {"other": "x"}, {"mint": "MintA"}]}
        assert self.extractor.extract(event) == ("MintA", True)

    def test_wrong_type_container_is_not_present(self):
        event = {"tokenTransfers": {"mint": "MintA"}, "events": {"swap": {"tokenInputs": [{"mint": "MintC"}]}}}
        assert self.extractor.extract(event) == ("MintC", True)

    def test_empty_event(self):
        assert extract_token({}) == ("", False)

    def test_custom_native_mint(self):
        event = {"tokenTransfers": [{"mint": "Wrapped"}, {"mint": "MintA"}]}
        assert extract_token(event, native_mint="Wrapped") == ("MintA", True)


class TestDecodePayload:
    """Tests for webhook body decoding."""

    def test_array(self):
        assert decode_payload(b'[{"a": 1}, {"b": 2}]') == [{"a": 1}, {"b": 2}]

    def test_single_object(self):
        assert decode_payload('{"a": 1}') == [{"a": 1}]

    def test_non_object_elements_skipped(self):
        assert decode_payload('[1, {"a": 1}, "x"]') == [{"a": 1}]

    def test_already_decoded(self):
        assert decode_payload([{"a": 1}]) == [{"a": 1}]

    def test_invalid_json(self):
        with pytest.raises(PayloadError):
            decode_payload(b"{not json")

    def test_scalar_rejected(self):
        with pytest.raises(PayloadError):
            decode_payload("42")

    def test_empty_rejected(self):
        with pytest.raises(PayloadError):
            decode_payload(b"   ")
