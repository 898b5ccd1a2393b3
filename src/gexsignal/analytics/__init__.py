"""Gamma exposure analytics: Black-Scholes gamma, GEX aggregation and gamma profile."""

from gexsignal.analytics.black_scholes import bs_gamma, hours_to_expiry, is_same_day_expiry
from gexsignal.analytics.gamma_profile import build_profile, find_profile_flip
from gexsignal.analytics.gex_calculator import (
    GammaExposureCalculator,
    classify_regime,
    expected_move,
    find_gamma_flip,
    max_pain,
    wall_strength,
)

__all__ = [
    "GammaExposureCalculator",
    "bs_gamma",
    "build_profile",
    "classify_regime",
    "expected_move",
    "find_gamma_flip",
    "find_profile_flip",
    "hours_to_expiry",
    "is_same_day_expiry",
    "max_pain",
    "wall_strength",
]
