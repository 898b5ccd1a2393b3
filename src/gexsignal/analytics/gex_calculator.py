"""
Gamma Exposure Calculator

Derives institutional positioning metrics from one option chain snapshot.

Key patterns:
- Single fold over contracts into immutable per-strike aggregates
- 0DTE gammas re-estimated with Black-Scholes (vendor gammas unreliable)
- Never raises: missing data or errors yield GEXMetrics.default(reason)

Sign convention:
- Call GEX = +gamma * OI * 100 * spot
- Put GEX  = -gamma * OI * 100 * spot
"""

from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

import numpy as np
from loguru import logger

from gexsignal.analytics.black_scholes import (
    bs_gamma,
    hours_to_expiry,
    is_same_day_expiry,
    years_from_hours,
)
from gexsignal.analytics.gamma_profile import build_profile, find_profile_flip
from gexsignal.config.engine_config import GEXSettings
from gexsignal.core.chain_parser import parse_chain
from gexsignal.core.market_time import MARKET_TZ, hours_until_close
from gexsignal.core.models import (
    GEXMetrics,
    MetricsDefaultReason,
    OptionContract,
    OptionRight,
    OptionsChain,
    Regime,
    StrikeAggregate,
    WallStrength,
)
from gexsignal.exceptions import ChainParseError

MIN_PROFILE_YEARS = 1 / 365


def find_gamma_flip(strikes: dict[float, StrikeAggregate], current_price: float) -> float:
    """
    Price where dealer net gamma changes sign.

    Walks strikes in ascending order. The first adjacent pair whose net GEX
    has opposite signs returns its midpoint. Until a crossing is found, the
    left strike of each pair with the smallest |net GEX| so far is kept as
    the fallback. With fewer than two strikes the current price is returned.
    """
    ordered = sorted(strikes)
    gamma_flip = current_price
    closest = float("inf")

    for i in range(len(ordered) - 1):
        strike, next_strike = ordered[i], ordered[i + 1]
        net, next_net = strikes[strike].net_gex, strikes[next_strike].net_gex

        if net * next_net < 0:
            gamma_flip = (strike + next_strike) / 2
            break

        if abs(net) < closest:
            closest = abs(net)
            gamma_flip = strike

    return gamma_flip


def classify_regime(
    total_gex: float,
    current_price: float,
    gamma_flip: float,
    flip_proximity_pct: float = 0.005,
) -> Regime:
    """Regime by sign of total GEX; volatile whenever price sits within 0.5% of the flip."""
    if total_gex > 0:
        regime = Regime.STABLE
    elif total_gex < 0:
        regime = Regime.VOLATILE
    else:
        regime = Regime.NEUTRAL

    if current_price > 0 and abs(current_price - gamma_flip) / current_price < flip_proximity_pct:
        regime = Regime.VOLATILE

    return regime


def expected_move(contracts: Iterable[OptionContract], current_price: float, tolerance: float = 1.0) -> float:
    """
    ATM straddle price (call mid + put mid) at the strike closest to spot.

    Mids fall back to the last trade when bid and ask are both zero.
    Returns 0 when either ATM leg is missing.
    """
    contracts = list(contracts)
    strikes = sorted({c.strike for c in contracts if c.strike > 0})
    if not strikes or current_price <= 0:
        return 0.0

    atm_strike = min(strikes, key=lambda s: abs(s - current_price))
    atm_call = next(
        (c for c in contracts if c.type == OptionRight.CALL and abs(c.strike - atm_strike) < tolerance), None
    )
    atm_put = next(
        (c for c in contracts if c.type == OptionRight.PUT and abs(c.strike - atm_strike) < tolerance), None
    )
    if atm_call is None or atm_put is None:
        return 0.0

    return atm_call.mid + atm_put.mid


def max_pain(contracts: Iterable[OptionContract]) -> float:
    """Strike at which option holders' aggregate intrinsic payout is smallest."""
    contracts = [c for c in contracts if c.strike > 0]
    strikes = sorted({c.strike for c in contracts})
    if not strikes:
        return 0.0

    contract_strikes = np.array([c.strike for c in contracts], dtype=float)
    weights = np.array([c.open_interest + c.volume for c in contracts], dtype=float)
    is_call = np.array([c.type == OptionRight.CALL for c in contracts])

    def payout(settle: float) -> float:
        intrinsic = np.where(
            is_call,
            np.maximum(settle - contract_strikes, 0.0),
            np.maximum(contract_strikes - settle, 0.0),
        )
        return float(np.sum(intrinsic * weights))

    return min(strikes, key=payout)


def wall_strength(open_interest: int, solid_oi: int = 5000, weak_oi: int = 1000) -> WallStrength:
    if open_interest <= 0:
        return WallStrength.UNCERTAIN
    if open_interest > solid_oi:
        return WallStrength.SOLID
    if open_interest < weak_oi:
        return WallStrength.WEAK
    return WallStrength.SOLID


class GammaExposureCalculator:
    """
    Compute GEXMetrics from an options chain.

    **Aggregation (per strike):**
    - GEX: gamma * OI * 100 * spot, calls positive, puts negative
    - Vanna: vega * OI * 100, calls positive, puts negative
    - Delta: delta * OI * 100 (institutional delta is the negated total)

    **Derived:**
    - Gamma flip: first sign change between adjacent strikes (midpoint)
    - Walls: strikes with the largest call / put open interest
    - Regime: stable / volatile / neutral, volatile near the flip
    - Expected move: ATM straddle

    Example:
        ```python
        calculator = GammaExposureCalculator()
        metrics = calculator.compute_metrics(raw_payload)
        if not metrics.is_default:
            print(metrics.gamma_flip, metrics.regime)
        ```
    """

    def __init__(self, settings: Optional[GEXSettings] = None, timezone: str = MARKET_TZ):
        self.settings = settings or GEXSettings()
        self.timezone = timezone

    def compute_metrics(self, chain, now: Optional[datetime] = None) -> GEXMetrics:
        """
        Compute metrics for one chain.

        Args:
            chain: OptionsChain, raw payload mapping, or None
            now: Evaluation time (default: current time). Drives 0DTE
                gamma re-estimation and charm; backtests pass snapshot time.

        Returns:
            GEXMetrics (default_reason set when the chain is unusable)
        """
        try:
            parsed = parse_chain(chain)
        except ChainParseError as e:
            logger.warning(f"Malformed option chain: {e}")
            return GEXMetrics.default(MetricsDefaultReason.MALFORMED_CHAIN)

        if parsed is None:
            return GEXMetrics.default(MetricsDefaultReason.NO_CHAIN)
        if parsed.underlying_price <= 0:
            logger.debug(f"No underlying price for {parsed.symbol or 'chain'}")
            return GEXMetrics.default(MetricsDefaultReason.NO_PRICE)
        if not parsed.contracts:
            return GEXMetrics.default(MetricsDefaultReason.NO_CONTRACTS)

        try:
            return self._compute(parsed, now)
        except Exception as e:
            logger.error(f"GEX calculation failed for {parsed.symbol}: {e}")
            return GEXMetrics.default(MetricsDefaultReason.CALCULATION_ERROR)

    def effective_gamma(self, contract: OptionContract, spot: float, now: Optional[datetime]) -> float:
        """Vendor gamma, or Black-Scholes gamma for same-day contracts with a usable IV."""
        if contract.implied_volatility <= 0:
            return contract.gamma

        hours = hours_to_expiry(contract.expiration_date, now, self.timezone)
        if not is_same_day_expiry(hours, self.settings.same_day_hours):
            return contract.gamma

        return bs_gamma(
            spot,
            contract.strike,
            contract.implied_volatility / 100,
            years_from_hours(hours),
            self.settings.risk_free_rate,
        )

    def aggregate_strikes(
        self,
        contracts: Iterable[OptionContract],
        spot: float,
        now: Optional[datetime] = None,
    ) -> dict[float, StrikeAggregate]:
        """Fold contracts into per-strike aggregates (insertion order = first seen)."""
        multiplier = self.settings.contract_multiplier
        strikes: dict[float, StrikeAggregate] = {}

        for contract in contracts:
            if contract.strike <= 0:
                continue

            gamma = self.effective_gamma(contract, spot, now)
            gex = gamma * contract.open_interest * multiplier * spot
            vanna = contract.vega * contract.open_interest * multiplier
            delta = contract.delta * contract.open_interest * multiplier
            current = strikes.get(contract.strike, StrikeAggregate())

            if contract.type == OptionRight.CALL:
                strikes[contract.strike] = replace(
                    current,
                    call_gex=current.call_gex + gex,
                    call_open_interest=current.call_open_interest + contract.open_interest,
                    call_vanna=current.call_vanna + vanna,
                    call_delta=current.call_delta + delta,
                )
            else:
                strikes[contract.strike] = replace(
                    current,
                    put_gex=current.put_gex - gex,
                    put_open_interest=current.put_open_interest + contract.open_interest,
                    put_vanna=current.put_vanna - vanna,
                    put_delta=current.put_delta + delta,
                )

        return strikes

    def _compute(self, chain: OptionsChain, now: Optional[datetime]) -> GEXMetrics:
        settings = self.settings
        price = chain.underlying_price
        strikes = self.aggregate_strikes(chain.contracts, price, now)

        total_gex = sum(agg.net_gex for agg in strikes.values())
        net_vanna = sum(agg.net_vanna for agg in strikes.values())
        total_delta = sum(agg.call_delta + agg.put_delta for agg in strikes.values())

        # Walls: largest OI per side, first strike wins ties
        call_wall, call_wall_oi = 0.0, 0
        put_wall, put_wall_oi = 0.0, 0
        for strike, agg in strikes.items():
            if agg.call_open_interest > call_wall_oi:
                call_wall, call_wall_oi = strike, agg.call_open_interest
            if agg.put_open_interest > put_wall_oi:
                put_wall, put_wall_oi = strike, agg.put_open_interest

        gamma_flip = find_gamma_flip(strikes, price)
        net_institutional_delta = -total_delta
        minutes_left = max(1.0, hours_until_close(now, self.timezone) * 60)

        profile_years = self._profile_time_to_expiry(chain, now)
        profile = build_profile(
            chain.contracts,
            price,
            profile_years,
            range_pct=settings.profile_range_pct,
            steps=settings.profile_steps,
            default_iv=settings.default_iv,
            rate=settings.risk_free_rate,
            multiplier=settings.contract_multiplier,
        )

        metrics = GEXMetrics(
            total_gex=total_gex,
            gamma_flip=gamma_flip,
            call_wall=call_wall,
            put_wall=put_wall,
            net_institutional_delta=net_institutional_delta,
            net_drift=net_institutional_delta / price * 100,
            regime=classify_regime(total_gex, price, gamma_flip, settings.flip_proximity_pct),
            expected_move=expected_move(chain.contracts, price, settings.atm_tolerance),
            net_vanna=net_vanna,
            current_price=price,
            net_charm=net_institutional_delta / minutes_left,
            max_pain=max_pain(chain.contracts),
            call_wall_oi=call_wall_oi,
            put_wall_oi=put_wall_oi,
            call_wall_strength=wall_strength(call_wall_oi, settings.solid_wall_oi, settings.weak_wall_oi),
            put_wall_strength=wall_strength(put_wall_oi, settings.solid_wall_oi, settings.weak_wall_oi),
            gamma_profile=profile,
            profile_gamma_flip=find_profile_flip(profile, price, settings.profile_max_flip_distance_pct),
            strikes=strikes,
        )

        logger.debug(
            f"{chain.symbol} GEX={total_gex:,.0f} flip={gamma_flip:.2f} "
            f"walls={put_wall:g}/{call_wall:g} regime={metrics.regime.value}"
        )
        return metrics

    def _profile_time_to_expiry(self, chain: OptionsChain, now: Optional[datetime]) -> float:
        """Years to the nearest unexpired expiration, floored at one day."""
        remaining = [
            hours
            for hours in (hours_to_expiry(exp, now, self.timezone) for exp in chain.expirations)
            if hours is not None and hours > 0
        ]
        if not remaining:
            return MIN_PROFILE_YEARS
        return max(years_from_hours(min(remaining)), MIN_PROFILE_YEARS)
