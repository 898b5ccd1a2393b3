"""
Option Chain Parser

Normalizes raw option chain payloads into the canonical OptionsChain.

Two wire shapes are accepted:
- Nested:  {"callExpDateMap": {exp: {strike: [contract, ...]}}, "putExpDateMap": {...}}
- Flat:    {"calls": [contract, ...], "puts": [contract, ...]}

Key patterns:
- Shape detected once at the boundary (NestedChainPayload | FlatChainPayload)
- Field aliases resolved per contract (strikePrice/strike, putCall/type, ...)
- Missing or non-numeric fields default to 0; the chain is never rejected
  because of one bad contract field
"""

import math
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping, Optional, Union

from loguru import logger

from gexsignal.core.models import OptionContract, OptionRight, OptionsChain
from gexsignal.exceptions import ChainParseError

NESTED_CALL_KEYS = ("callExpDateMap", "callMap")
NESTED_PUT_KEYS = ("putExpDateMap", "putMap")

STRIKE_KEYS = ("strikePrice", "strike")
TYPE_KEYS = ("putCall", "type", "right")
OPEN_INTEREST_KEYS = ("openInterest", "open_interest")
VOLUME_KEYS = ("totalVolume", "volume")
IV_KEYS = ("volatility", "impliedVolatility", "implied_volatility")
EXPIRATION_KEYS = ("expirationDate", "expiration_date", "expiration")


@dataclass(frozen=True, slots=True)
class NestedChainPayload:
    """Chain keyed by expiration then strike."""

    call_map: Mapping[str, Any]
    put_map: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class FlatChainPayload:
    """Chain as flat call/put lists."""

    calls: list[Any]
    puts: list[Any]


ChainPayload = Union[NestedChainPayload, FlatChainPayload]


def to_float(value: Any, default: float = 0.0) -> float:
    """Coerce a payload value to float; None, NaN and garbage become default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def to_int(value: Any, default: int = 0) -> int:
    number = to_float(value, float(default))
    return max(int(number), 0)


def _first(data: Mapping[str, Any], keys: Iterable[str], default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def expiration_day(expiration: str) -> str:
    """
    Calendar day of an expiration key.

    '2026-10-19:0' and '2026-10-19T20:00:00Z' both map to '2026-10-19'.
    """
    return str(expiration)[:10]


def detect_payload(payload: Mapping[str, Any]) -> ChainPayload:
    """Classify a raw payload into one of the supported shapes."""
    if any(key in payload for key in NESTED_CALL_KEYS + NESTED_PUT_KEYS):
        call_map = _first(payload, NESTED_CALL_KEYS, {})
        put_map = _first(payload, NESTED_PUT_KEYS, {})
        if not isinstance(call_map, Mapping) or not isinstance(put_map, Mapping):
            raise ChainParseError("Nested chain maps must be objects keyed by expiration")
        return NestedChainPayload(call_map=call_map, put_map=put_map)

    calls = payload.get("calls") or []
    puts = payload.get("puts") or []
    if not isinstance(calls, list) or not isinstance(puts, list):
        raise ChainParseError("Flat chain 'calls' and 'puts' must be lists")
    return FlatChainPayload(calls=calls, puts=puts)


def underlying_price(payload: Mapping[str, Any]) -> float:
    """Underlying price: underlying.last, underlying.lastPrice, then underlyingPrice."""
    underlying = payload.get("underlying")
    candidates = []
    if isinstance(underlying, Mapping):
        candidates.extend([underlying.get("last"), underlying.get("lastPrice")])
    candidates.extend([payload.get("underlyingPrice"), payload.get("underlying_price")])

    for candidate in candidates:
        price = to_float(candidate)
        if price > 0:
            return price
    return 0.0


def open_price(payload: Mapping[str, Any]) -> Optional[float]:
    underlying = payload.get("underlying")
    candidates = []
    if isinstance(underlying, Mapping):
        candidates.extend([underlying.get("openPrice"), underlying.get("open")])
    candidates.append(payload.get("openPrice"))

    for candidate in candidates:
        price = to_float(candidate)
        if price > 0:
            return price
    return None


def _parse_right(raw: Any, default: OptionRight) -> OptionRight:
    if isinstance(raw, OptionRight):
        return raw
    text = str(raw or "").strip().upper()
    if text in ("CALL", "C"):
        return OptionRight.CALL
    if text in ("PUT", "P"):
        return OptionRight.PUT
    return default


def parse_contract(
    data: Mapping[str, Any],
    side: OptionRight,
    expiration: Optional[str] = None,
    strike: Optional[float] = None,
) -> OptionContract:
    """
    Build one OptionContract from a raw contract object.

    Args:
        data: Raw contract fields
        side: Side of the map the contract came from (used when putCall is absent)
        expiration: Expiration key from the enclosing map (nested shape)
        strike: Strike from the enclosing map key (nested shape fallback)
    """
    resolved_strike = to_float(_first(data, STRIKE_KEYS), strike or 0.0)
    resolved_expiration = expiration or str(_first(data, EXPIRATION_KEYS, ""))

    return OptionContract(
        strike=resolved_strike,
        type=_parse_right(_first(data, TYPE_KEYS), side),
        bid=to_float(data.get("bid")),
        ask=to_float(data.get("ask")),
        last=to_float(data.get("last")),
        volume=to_int(_first(data, VOLUME_KEYS)),
        open_interest=to_int(_first(data, OPEN_INTEREST_KEYS)),
        delta=to_float(data.get("delta")),
        gamma=to_float(data.get("gamma")),
        theta=to_float(data.get("theta")),
        vega=to_float(data.get("vega")),
        implied_volatility=to_float(_first(data, IV_KEYS)),
        expiration_date=resolved_expiration,
    )


def _iter_nested(exp_map: Mapping[str, Any], side: OptionRight) -> Iterator[OptionContract]:
    for exp_key, strikes in exp_map.items():
        if not isinstance(strikes, Mapping):
            logger.debug(f"Skipping non-object strike map for {side.value} {exp_key}")
            continue
        for strike_key, entries in strikes.items():
            if isinstance(entries, Mapping):
                entries = [entries]
            for entry in entries or []:
                if isinstance(entry, Mapping):
                    yield parse_contract(entry, side, str(exp_key), to_float(strike_key))


def _iter_flat(entries: list[Any], side: OptionRight) -> Iterator[OptionContract]:
    for entry in entries:
        if isinstance(entry, Mapping):
            yield parse_contract(entry, side)


def iter_contracts(shape: ChainPayload) -> Iterator[OptionContract]:
    """Contracts of a classified payload, calls first."""
    if isinstance(shape, NestedChainPayload):
        yield from _iter_nested(shape.call_map, OptionRight.CALL)
        yield from _iter_nested(shape.put_map, OptionRight.PUT)
    else:
        yield from _iter_flat(shape.calls, OptionRight.CALL)
        yield from _iter_flat(shape.puts, OptionRight.PUT)


def parse_chain(payload: Any, symbol: Optional[str] = None) -> Optional[OptionsChain]:
    """
    Normalize a raw chain payload.

    Args:
        payload: Raw payload mapping, an OptionsChain, or None
        symbol: Symbol to use when the payload does not carry one

    Returns:
        OptionsChain, or None when payload is None

    Raises:
        ChainParseError: If payload is not a mapping or its maps are malformed
    """
    if payload is None:
        return None
    if isinstance(payload, OptionsChain):
        return payload
    if not isinstance(payload, Mapping):
        raise ChainParseError(f"Unsupported chain payload type: {type(payload).__name__}")

    shape = detect_payload(payload)
    contracts = tuple(iter_contracts(shape))

    underlying = payload.get("underlying")
    resolved_symbol = payload.get("symbol")
    if not resolved_symbol and isinstance(underlying, Mapping):
        resolved_symbol = underlying.get("symbol")

    return OptionsChain(
        symbol=str(resolved_symbol or symbol or ""),
        underlying_price=underlying_price(payload),
        contracts=contracts,
        open_price=open_price(payload),
    )
