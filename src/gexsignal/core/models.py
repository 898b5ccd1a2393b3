"""
Core Market Data Models

This module contains the canonical option chain and gamma exposure models
shared by the analytics, signal and backtest packages.

Key patterns:
- dataclass(frozen=True, slots=True) for parsed market data (never mutated)
- __post_init__ validation for data integrity
- str Enums so values serialize directly to JSON / Delta Lake
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class OptionRight(str, Enum):
    """Option right enum (CALL or PUT)."""

    CALL = "CALL"
    PUT = "PUT"


class Regime(str, Enum):
    """
    Dealer gamma regime.

    STABLE: dealers long gamma, hedging dampens moves
    VOLATILE: dealers short gamma (or price sits on the flip), hedging amplifies moves
    NEUTRAL: no net exposure
    """

    STABLE = "stable"
    VOLATILE = "volatile"
    NEUTRAL = "neutral"


class WallStrength(str, Enum):
    """Strength of a call/put wall judged by its open interest."""

    SOLID = "solid"
    WEAK = "weak"
    UNCERTAIN = "uncertain"


class MetricsDefaultReason(str, Enum):
    """Why GEXMetrics fell back to the zeroed default."""

    NO_CHAIN = "no_chain"
    NO_PRICE = "no_price"
    NO_CONTRACTS = "no_contracts"
    MALFORMED_CHAIN = "malformed_chain"
    CALCULATION_ERROR = "calculation_error"


@dataclass(frozen=True, slots=True)
class OptionContract:
    """
    Single option contract from a chain snapshot.

    Attributes:
        strike: Strike price
        type: CALL or PUT
        bid: Best bid price
        ask: Best ask price
        last: Last trade price
        volume: Session volume
        open_interest: Open interest (contracts)
        delta: Option delta (signed)
        gamma: Option gamma
        theta: Option theta
        vega: Option vega
        implied_volatility: IV in percent points (20.0 = 20%)
        expiration_date: Expiration key, possibly suffixed (e.g. '2026-10-19:0')
    """

    strike: float
    type: OptionRight
    bid: float = 0.0
    ask: float = 0.0
    last: float = 0.0
    volume: int = 0
    open_interest: int = 0
    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    implied_volatility: float = 0.0
    expiration_date: str = ""

    def __post_init__(self):
        if self.open_interest < 0:
            raise ValueError(f"open_interest must be >= 0, got {self.open_interest}")
        if self.volume < 0:
            raise ValueError(f"volume must be >= 0, got {self.volume}")

    @property
    def mid(self) -> float:
        """Bid/ask midpoint, falling back to last trade when the quote is empty."""
        mid = (self.bid + self.ask) / 2
        return mid if mid else self.last

    def to_dict(self) -> dict[str, Any]:
        return {
            "strike": self.strike,
            "type": self.type.value,
            "bid": self.bid,
            "ask": self.ask,
            "last": self.last,
            "volume": self.volume,
            "open_interest": self.open_interest,
            "delta": self.delta,
            "gamma": self.gamma,
            "theta": self.theta,
            "vega": self.vega,
            "implied_volatility": self.implied_volatility,
            "expiration_date": self.expiration_date,
        }


@dataclass(frozen=True, slots=True)
class OptionsChain:
    """
    Canonical options chain for one underlying.

    Attributes:
        symbol: Underlying symbol
        underlying_price: Last underlying price (0 when unavailable)
        contracts: All contracts across expirations, in payload order
        open_price: Session open of the underlying, if the payload carries it
    """

    symbol: str
    underlying_price: float
    contracts: tuple[OptionContract, ...] = ()
    open_price: Optional[float] = None

    @property
    def expirations(self) -> list[str]:
        """Distinct expiration keys in first-seen order."""
        seen: dict[str, None] = {}
        for contract in self.contracts:
            if contract.expiration_date:
                seen.setdefault(contract.expiration_date, None)
        return list(seen)

    def for_expiration(self, expiration: str, right: Optional[OptionRight] = None) -> list[OptionContract]:
        """Contracts of one expiration, optionally filtered by side."""
        return [
            c for c in self.contracts
            if c.expiration_date == expiration and (right is None or c.type == right)
        ]


@dataclass(frozen=True, slots=True)
class StrikeAggregate:
    """
    Per-strike dealer exposure, built by a single fold over the chain.

    put_gex and put_vanna carry the dealer sign (<= 0 for positive gamma/vega).
    """

    call_gex: float = 0.0
    put_gex: float = 0.0
    call_open_interest: int = 0
    put_open_interest: int = 0
    call_vanna: float = 0.0
    put_vanna: float = 0.0
    call_delta: float = 0.0
    put_delta: float = 0.0

    @property
    def net_gex(self) -> float:
        return self.call_gex + self.put_gex

    @property
    def net_vanna(self) -> float:
        return self.call_vanna + self.put_vanna


@dataclass(frozen=True, slots=True)
class GammaProfilePoint:
    """Net dealer GEX at a hypothetical underlying price."""

    price: float
    net_gex: float


@dataclass(slots=True)
class GEXMetrics:
    """
    Institutional positioning metrics derived from one chain snapshot.

    default_reason is set (and every number zeroed) when the chain could not
    be evaluated; callers check ``is_default`` instead of catching errors.
    """

    total_gex: float = 0.0
    gamma_flip: float = 0.0
    call_wall: float = 0.0
    put_wall: float = 0.0
    net_institutional_delta: float = 0.0
    net_drift: float = 0.0
    regime: Regime = Regime.NEUTRAL
    expected_move: float = 0.0
    net_vanna: float = 0.0
    current_price: float = 0.0
    net_charm: float = 0.0
    max_pain: float = 0.0
    call_wall_oi: int = 0
    put_wall_oi: int = 0
    call_wall_strength: WallStrength = WallStrength.UNCERTAIN
    put_wall_strength: WallStrength = WallStrength.UNCERTAIN
    gamma_profile: list[GammaProfilePoint] = field(default_factory=list)
    profile_gamma_flip: Optional[float] = None
    strikes: dict[float, StrikeAggregate] = field(default_factory=dict)
    default_reason: Optional[MetricsDefaultReason] = None

    @classmethod
    def default(cls, reason: MetricsDefaultReason) -> "GEXMetrics":
        """Zeroed metrics with neutral regime."""
        return cls(default_reason=reason)

    @property
    def is_default(self) -> bool:
        return self.default_reason is not None

    def to_dict(self) -> dict[str, Any]:
        """Serializable summary (profile included, per-strike map omitted)."""
        return {
            "total_gex": self.total_gex,
            "gamma_flip": self.gamma_flip,
            "call_wall": self.call_wall,
            "put_wall": self.put_wall,
            "net_institutional_delta": self.net_institutional_delta,
            "net_drift": self.net_drift,
            "regime": self.regime.value,
            "expected_move": self.expected_move,
            "net_vanna": self.net_vanna,
            "current_price": self.current_price,
            "net_charm": self.net_charm,
            "max_pain": self.max_pain,
            "call_wall_oi": self.call_wall_oi,
            "put_wall_oi": self.put_wall_oi,
            "call_wall_strength": self.call_wall_strength.value,
            "put_wall_strength": self.put_wall_strength.value,
            "profile_gamma_flip": self.profile_gamma_flip,
            "gamma_profile": [{"price": p.price, "net_gex": p.net_gex} for p in self.gamma_profile],
            "default_reason": self.default_reason.value if self.default_reason else None,
        }
