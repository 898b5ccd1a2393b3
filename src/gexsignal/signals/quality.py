"""
Spread Quality Scoring

Scores a credit spread's short strike on six weighted factors (each 0-10),
producing a 0-100 quality score, a quality level and a risk level.

Factors (default weights):
- move_exhaustion (0.25): how much of the expected move the session has used
- expected_move_usage (0.20): how far price has travelled toward the short strike
- wall_proximity (0.20): distance from the short strike to the supporting wall
- time_remaining (0.15): hours left in the session
- regime_strength (0.10): gamma regime and size of total GEX
- drift_alignment (0.10): institutional drift in the spread's favour

Scoring is a pure function of its inputs.
"""

from typing import Optional

from gexsignal.config.engine_config import QualityWeights
from gexsignal.core.models import OptionRight, Regime
from gexsignal.signals.models import GEXContext, QualityAssessment, QualityLevel, RiskLevel

PREMIUM_THRESHOLD = 80
STANDARD_THRESHOLD = 60
STRONG_GEX = 1_000_000_000
MODERATE_GEX = 100_000_000


def _ladder(value: float, steps: list[tuple[float, float]], otherwise: float) -> float:
    """Score of the first bound that value does not exceed."""
    for bound, score in steps:
        if value <= bound:
            return score
    return otherwise


def score_move_exhaustion(move_ratio: float) -> float:
    return _ladder(move_ratio, [(0.3, 10), (0.6, 8), (1.0, 6), (1.5, 3)], 1)


def score_expected_move_usage(adverse_ratio: float) -> float:
    return _ladder(adverse_ratio, [(0.0, 10), (0.25, 8), (0.5, 6), (0.75, 4), (1.0, 2)], 0)


def score_wall_proximity(wall_distance: float) -> float:
    return _ladder(wall_distance, [(5, 10), (10, 8), (20, 6), (35, 4)], 2)


def score_time_remaining(hours: float) -> float:
    if hours >= 4:
        return 10
    if hours >= 3:
        return 8
    if hours >= 2.5:
        return 6
    if hours >= 1.5:
        return 4
    return 2


def score_regime_strength(regime: Regime, total_gex: float) -> float:
    if regime == Regime.STABLE:
        if abs(total_gex) >= STRONG_GEX:
            return 10
        if abs(total_gex) >= MODERATE_GEX:
            return 8
        return 7
    if regime == Regime.NEUTRAL:
        return 5
    return 2


def score_drift_alignment(aligned_drift: float) -> float:
    if aligned_drift >= 1.0:
        return 10
    if aligned_drift >= 0.5:
        return 8
    if aligned_drift > -0.5:
        return 6
    if aligned_drift > -1.0:
        return 3
    return 0


def quality_level(score: int) -> QualityLevel:
    if score >= PREMIUM_THRESHOLD:
        return QualityLevel.PREMIUM
    if score >= STANDARD_THRESHOLD:
        return QualityLevel.STANDARD
    return QualityLevel.AGGRESSIVE


def risk_level(move_ratio: float, hours_remaining: float, wall_distance: float) -> RiskLevel:
    if move_ratio > 1.5 or hours_remaining < 1.5:
        return RiskLevel.HIGH
    if move_ratio > 1.0 or hours_remaining < 2.5 or wall_distance > 35:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class QualityScorer:
    """
    Weighted six-factor spread scorer.

    Example:
        ```python
        scorer = QualityScorer()
        assessment = scorer.score(context, short_strike=5750, right=OptionRight.PUT,
                                  open_price=5800, wall=5740, hours_remaining=4.5)
        assessment.score, assessment.level
        ```
    """

    def __init__(self, weights: Optional[QualityWeights] = None):
        self.weights = weights or QualityWeights()

    def score(
        self,
        context: GEXContext,
        short_strike: float,
        right: OptionRight,
        open_price: Optional[float],
        wall: float,
        hours_remaining: float,
    ) -> QualityAssessment:
        """
        Score one spread side.

        Args:
            context: GEX context (price, expected move, regime, drift)
            short_strike: Strike of the sold leg
            right: PUT for bull put spreads, CALL for bear call spreads
            open_price: Session open (current price when unknown)
            wall: Put wall for PUT spreads, call wall for CALL spreads
            hours_remaining: Hours until the close
        """
        price = context.current_price
        session_open = open_price if open_price and open_price > 0 else price
        denominator = max(context.expected_move, 1.0)

        move_ratio = abs(price - session_open) / denominator
        toward_strike = session_open - price if right == OptionRight.PUT else price - session_open
        adverse_ratio = max(toward_strike, 0.0) / denominator
        wall_distance = abs(short_strike - wall)
        aligned_drift = context.net_drift if right == OptionRight.PUT else -context.net_drift

        factors = {
            "move_exhaustion": score_move_exhaustion(move_ratio),
            "expected_move_usage": score_expected_move_usage(adverse_ratio),
            "wall_proximity": score_wall_proximity(wall_distance),
            "time_remaining": score_time_remaining(hours_remaining),
            "regime_strength": score_regime_strength(context.regime, context.total_gex),
            "drift_alignment": score_drift_alignment(aligned_drift),
        }

        weights = self.weights.as_dict()
        total = round(sum(factors[name] * weights[name] * 10 for name in factors))
        total = max(0, min(100, total))

        return QualityAssessment(
            score=total,
            level=quality_level(total),
            risk_level=risk_level(move_ratio, hours_remaining, wall_distance),
            factors=factors,
            move_ratio=round(move_ratio, 4),
            wall_distance=wall_distance,
            hours_remaining=round(hours_remaining, 4),
        )


def weaker(first: QualityAssessment, second: QualityAssessment) -> QualityAssessment:
    """The lower-scoring assessment (first wins ties)."""
    return second if second.score < first.score else first
