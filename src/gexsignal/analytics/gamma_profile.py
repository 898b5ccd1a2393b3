"""
Gamma Profile Simulator

Recomputes dealer net GEX across a grid of hypothetical underlying prices
(default +/-8% of spot in 60 steps) and locates the theoretical gamma flip
by linear interpolation between the two grid points bracketing zero.
"""

from typing import Iterable, Optional

import numpy as np

from gexsignal.analytics.black_scholes import RISK_FREE_RATE, bs_gamma_vector
from gexsignal.core.models import GammaProfilePoint, OptionContract, OptionRight

PROFILE_RANGE_PCT = 0.08
PROFILE_STEPS = 60
MAX_FLIP_DISTANCE_PCT = 0.20
DEFAULT_IV = 20.0
CONTRACT_MULTIPLIER = 100


def build_profile(
    contracts: Iterable[OptionContract],
    current_price: float,
    time_to_expiry: float,
    range_pct: float = PROFILE_RANGE_PCT,
    steps: int = PROFILE_STEPS,
    default_iv: float = DEFAULT_IV,
    rate: float = RISK_FREE_RATE,
    multiplier: int = CONTRACT_MULTIPLIER,
) -> list[GammaProfilePoint]:
    """
    Net GEX at each grid price.

    Args:
        contracts: Chain contracts (contracts without open interest are ignored)
        current_price: Spot price the grid is centred on
        time_to_expiry: Years to expiry used for every contract
        range_pct: Half-width of the grid as a fraction of spot
        steps: Number of equal steps (steps + 1 points)
        default_iv: IV in percent used when a contract reports none

    Returns:
        Profile points in ascending price order (empty when price <= 0)
    """
    if current_price <= 0 or steps < 1:
        return []

    positions = [c for c in contracts if c.open_interest > 0 and c.strike > 0]
    strikes = np.array([c.strike for c in positions], dtype=float)
    sigmas = np.array([(c.implied_volatility or default_iv) / 100 for c in positions], dtype=float)
    signed_oi = np.array(
        [c.open_interest if c.type == OptionRight.CALL else -c.open_interest for c in positions],
        dtype=float,
    )

    low = current_price * (1 - range_pct)
    high = current_price * (1 + range_pct)
    step = (high - low) / steps

    profile = []
    for i in range(steps + 1):
        price = low + i * step
        gammas = bs_gamma_vector(price, strikes, sigmas, time_to_expiry, rate)
        net_gex = float(np.sum(gammas * signed_oi)) * multiplier * price
        profile.append(GammaProfilePoint(price=round(price, 2), net_gex=net_gex))

    return profile


def find_profile_flip(
    profile: list[GammaProfilePoint],
    current_price: float,
    max_distance_pct: float = MAX_FLIP_DISTANCE_PCT,
) -> Optional[float]:
    """
    Interpolated zero crossing of the profile.

    Scans adjacent pairs in price order; the first pair whose net GEX
    changes sign (or touches zero) yields
    ``p1 + |g1| / (|g1| + |g2|) * (p2 - p1)``. Crossings farther than
    max_distance_pct from current_price are skipped.
    """
    for left, right in zip(profile, profile[1:]):
        g1, g2 = left.net_gex, right.net_gex
        if g1 * g2 > 0 or (g1 == 0 and g2 == 0):
            continue

        weight = abs(g1) / (abs(g1) + abs(g2))
        crossing = left.price + weight * (right.price - left.price)

        if current_price > 0 and abs(crossing - current_price) / current_price > max_distance_pct:
            continue
        return crossing

    return None
