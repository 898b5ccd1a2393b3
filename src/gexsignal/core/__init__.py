"""Canonical option chain models and payload parsing."""

from gexsignal.core.chain_parser import expiration_day, parse_chain
from gexsignal.core.models import (
    GammaProfilePoint,
    GEXMetrics,
    MetricsDefaultReason,
    OptionContract,
    OptionRight,
    OptionsChain,
    Regime,
    StrikeAggregate,
    WallStrength,
)

__all__ = [
    "GammaProfilePoint",
    "GEXMetrics",
    "MetricsDefaultReason",
    "OptionContract",
    "OptionRight",
    "OptionsChain",
    "Regime",
    "StrikeAggregate",
    "WallStrength",
    "expiration_day",
    "parse_chain",
]
