"""
Tests for option chain payload parsing.
"""

import pytest

from gexsignal.core.chain_parser import (
    FlatChainPayload,
    NestedChainPayload,
    detect_payload,
    expiration_day,
    parse_chain,
    to_float,
)
from gexsignal.core.models import OptionRight, OptionsChain
from gexsignal.exceptions import ChainParseError


class TestPayloadShapes:
    """Shape detection and normalization."""

    def test_flat_payload(self, stable_chain):
        chain = parse_chain(stable_chain)

        assert chain.symbol == "SPX"
        assert chain.underlying_price == 100.0
        assert len(chain.contracts) == 14
        assert sum(1 for c in chain.contracts if c.type == OptionRight.CALL) == 7
        assert chain.expirations == ["2026-10-19"]

    def test_nested_payload(self, nested_chain):
        assert isinstance(detect_payload(nested_chain), NestedChainPayload)

        chain = parse_chain(nested_chain)

        assert chain.underlying_price == 100.0
        assert len(chain.contracts) == 14
        assert chain.expirations == ["2026-10-19:0"]

    def test_nested_and_flat_agree(self, stable_chain, nested_chain):
        flat = parse_chain(stable_chain)
        nested = parse_chain(nested_chain)

        def key(c):
            return (c.type, c.strike, c.open_interest, c.delta, c.gamma, c.bid, c.ask)

        assert sorted(map(key, flat.contracts)) == sorted(map(key, nested.contracts))

    def test_flat_detection(self, stable_chain):
        assert isinstance(detect_payload(stable_chain), FlatChainPayload)

    def test_nested_strike_from_map_key(self):
        payload = {
            "underlyingPrice": 50,
            "callExpDateMap": {"2026-10-19:0": {"55.0": [{"bid": 1, "ask": 1.2, "openInterest": 10}]}},
        }

        chain = parse_chain(payload)

        assert chain.contracts[0].strike == 55.0
        assert chain.contracts[0].type == OptionRight.CALL
        assert chain.contracts[0].expiration_date == "2026-10-19:0"

    def test_options_chain_passthrough(self, stable_chain):
        chain = parse_chain(stable_chain)
        assert parse_chain(chain) is chain

    def test_none_payload(self):
        assert parse_chain(None) is None

    def test_non_mapping_rejected(self):
        with pytest.raises(ChainParseError, match="Unsupported chain payload"):
            parse_chain(["not", "a", "chain"])

    def test_malformed_nested_map_rejected(self):
        with pytest.raises(ChainParseError):
            parse_chain({"callExpDateMap": ["bad"]})

    def test_unknown_shape_is_empty_chain(self):
        chain = parse_chain({"underlyingPrice": 100})

        assert isinstance(chain, OptionsChain)
        assert chain.contracts == ()


class TestFieldHandling:
    """Aliases, defaults and underlying price lookup."""

    def test_field_aliases(self):
        payload = {
            "underlyingPrice": 100,
            "puts": [{
                "strikePrice": 95,
                "putCall": "PUT",
                "openInterest": 250,
                "totalVolume": 40,
                "volatility": 18.5,
                "expirationDate": "2026-10-19",
            }],
        }

        contract = parse_chain(payload).contracts[0]

        assert contract.strike == 95
        assert contract.type == OptionRight.PUT
        assert contract.open_interest == 250
        assert contract.volume == 40
        assert contract.implied_volatility == 18.5

    def test_missing_and_garbage_fields_default_to_zero(self):
        payload = {
            "underlyingPrice": 100,
            "calls": [{"strike": 100, "gamma": None, "delta": "n/a", "bid": float("nan"), "openInterest": "oops"}],
        }

        contract = parse_chain(payload).contracts[0]

        assert contract.gamma == 0
        assert contract.delta == 0
        assert contract.bid == 0
        assert contract.open_interest == 0

    def test_side_defaults_to_map_side(self):
        payload = {"underlyingPrice": 100, "puts": [{"strike": 90}]}
        assert parse_chain(payload).contracts[0].type == OptionRight.PUT

    def test_underlying_price_precedence(self):
        payload = {"underlying": {"last": 101.5, "lastPrice": 99}, "underlyingPrice": 98}
        assert parse_chain(payload).underlying_price == 101.5

        payload = {"underlying": {"last": 0, "lastPrice": 99}, "underlyingPrice": 98}
        assert parse_chain(payload).underlying_price == 99

        payload = {"underlying": None, "underlyingPrice": 98}
        assert parse_chain(payload).underlying_price == 98

    def test_missing_price_is_zero(self):
        assert parse_chain({"calls": []}).underlying_price == 0.0

    def test_open_price(self):
        payload = {"underlying": {"last": 100, "openPrice": 98.5}}
        assert parse_chain(payload).open_price == 98.5
        assert parse_chain({"underlyingPrice": 100}).open_price is None

    def test_mid_falls_back_to_last(self):
        payload = {"underlyingPrice": 100, "calls": [{"strike": 100, "bid": 0, "ask": 0, "last": 1.75}]}
        assert parse_chain(payload).contracts[0].mid == 1.75


def test_expiration_day():
    assert expiration_day("2026-10-19:0") == "2026-10-19"
    assert expiration_day("2026-10-19T20:00:00.000+00:00") == "2026-10-19"


def test_to_float():
    assert to_float("1.5") == 1.5
    assert to_float(None, 7.0) == 7.0
    assert to_float(True) == 0.0
    assert to_float(float("inf")) == 0.0
