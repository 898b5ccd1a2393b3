"""
Black-Scholes Gamma Engine

Closed-form gamma used to re-estimate same-day (0DTE) contract gammas,
which vendor feeds report unreliably, and to simulate the dealer gamma
curve at hypothetical prices.

Formula:
    d1 = (ln(S/K) + (r + sigma^2 / 2) * T) / (sigma * sqrt(T))
    gamma = N'(d1) / (S * sigma * sqrt(T))
"""

import math
from datetime import datetime
from typing import Optional

import numpy as np
from scipy.stats import norm

from gexsignal.core.market_time import MARKET_TZ, parse_day, session_close, to_market_time

RISK_FREE_RATE = 0.04
SAME_DAY_HOURS = 6.5          # One regular trading session
HOURS_PER_YEAR = 24 * 365


def bs_gamma(
    spot: float,
    strike: float,
    sigma: float,
    time_to_expiry: float,
    rate: float = RISK_FREE_RATE,
) -> float:
    """
    Black-Scholes gamma.

    Args:
        spot: Underlying price S
        strike: Strike K
        sigma: Annualized volatility as a decimal (0.20 = 20%)
        time_to_expiry: Time to expiry in years
        rate: Risk-free rate (default 4%)

    Returns:
        Gamma (>= 0). Degenerate inputs (S, K, sigma or T not positive)
        return 0 so callers can treat them as no contribution.
    """
    if spot <= 0 or strike <= 0 or sigma <= 0 or time_to_expiry <= 0:
        return 0.0

    sqrt_t = math.sqrt(time_to_expiry)
    d1 = (math.log(spot / strike) + (rate + 0.5 * sigma ** 2) * time_to_expiry) / (sigma * sqrt_t)
    gamma = float(norm.pdf(d1)) / (spot * sigma * sqrt_t)

    if not math.isfinite(gamma):
        return 0.0
    return gamma


def bs_gamma_vector(
    spot: float,
    strikes: np.ndarray,
    sigmas: np.ndarray,
    time_to_expiry: float,
    rate: float = RISK_FREE_RATE,
) -> np.ndarray:
    """Vectorized bs_gamma over many strikes at one spot; degenerate entries are 0."""
    strikes = np.asarray(strikes, dtype=float)
    sigmas = np.asarray(sigmas, dtype=float)
    gammas = np.zeros_like(strikes)
    if spot <= 0 or time_to_expiry <= 0:
        return gammas

    valid = (strikes > 0) & (sigmas > 0)
    if not valid.any():
        return gammas

    sqrt_t = math.sqrt(time_to_expiry)
    k = strikes[valid]
    s = sigmas[valid]
    d1 = (np.log(spot / k) + (rate + 0.5 * s ** 2) * time_to_expiry) / (s * sqrt_t)
    gammas[valid] = norm.pdf(d1) / (spot * s * sqrt_t)
    return np.nan_to_num(gammas, nan=0.0, posinf=0.0, neginf=0.0)


def hours_to_expiry(expiration: str, now: Optional[datetime] = None, tz: str = MARKET_TZ) -> Optional[float]:
    """
    Hours from now until the 16:00 close on the expiration day.

    Returns None when the expiration key carries no parseable date.
    Negative values mean the contract has already expired.
    """
    day = parse_day(expiration)
    if day is None:
        return None
    local_now = to_market_time(now, tz)
    return (session_close(day, tz) - local_now).total_seconds() / 3600


def is_same_day_expiry(hours: Optional[float], session_hours: float = SAME_DAY_HOURS) -> bool:
    """True when less than one trading session remains (0 < hours < 6.5)."""
    return hours is not None and 0 < hours < session_hours


def years_from_hours(hours: float) -> float:
    return hours / HOURS_PER_YEAR
