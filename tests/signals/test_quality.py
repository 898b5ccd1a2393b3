"""
Tests for the six-factor spread quality scorer.
"""

import pytest

from gexsignal.config.engine_config import QualityWeights
from gexsignal.core.models import OptionRight, Regime
from gexsignal.signals.models import GEXContext, QualityLevel, RiskLevel
from gexsignal.signals.quality import (
    QualityScorer,
    quality_level,
    risk_level,
    score_drift_alignment,
    score_expected_move_usage,
    score_move_exhaustion,
    score_regime_strength,
    score_time_remaining,
    score_wall_proximity,
    weaker,
)


def make_context(**overrides):
    values = dict(
        regime=Regime.STABLE,
        total_gex=1_550_000,
        gamma_flip=87.5,
        call_wall=115,
        put_wall=85,
        net_drift=0.0,
        net_vanna=0.0,
        expected_move=4.0,
        current_price=100.0,
    )
    values.update(overrides)
    return GEXContext(**values)


@pytest.fixture
def scorer():
    return QualityScorer()


class TestScore:
    def test_ideal_bull_put(self, scorer):
        assessment = scorer.score(make_context(), 90, OptionRight.PUT, None, 85, 5.0)

        assert assessment.factors == {
            "move_exhaustion": 10,
            "expected_move_usage": 10,
            "wall_proximity": 10,
            "time_remaining": 10,
            "regime_strength": 7,
            "drift_alignment": 6,
        }
        assert assessment.score == 93
        assert assessment.level == QualityLevel.PREMIUM
        assert assessment.risk_level == RiskLevel.LOW

    def test_same_inputs_same_assessment(self, scorer):
        context = make_context(net_drift=-0.7, current_price=103.0)

        first = scorer.score(context, 110, OptionRight.CALL, 99.0, 115, 2.0)
        second = scorer.score(context, 110, OptionRight.CALL, 99.0, 115, 2.0)

        assert first.score == second.score
        assert first.level == second.level
        assert first.risk_level == second.risk_level
        assert first.factors == second.factors

    def test_adverse_move_toward_put(self, scorer):
        # Opened at 103, now 100: 3 points toward the put side on a 4 point move
        assessment = scorer.score(make_context(), 90, OptionRight.PUT, 103.0, 85, 5.0)

        assert assessment.move_ratio == 0.75
        assert assessment.factors["move_exhaustion"] == 6
        assert assessment.factors["expected_move_usage"] == 4

    def test_same_move_favours_call_side(self, scorer):
        assessment = scorer.score(make_context(), 110, OptionRight.CALL, 103.0, 115, 5.0)

        assert assessment.factors["expected_move_usage"] == 10

    def test_drift_aligned_per_side(self, scorer):
        context = make_context(net_drift=1.2)

        put = scorer.score(context, 90, OptionRight.PUT, None, 85, 5.0)
        call = scorer.score(context, 110, OptionRight.CALL, None, 115, 5.0)

        assert put.factors["drift_alignment"] == 10
        assert call.factors["drift_alignment"] == 0

    def test_small_expected_move_floored_at_one(self, scorer):
        assessment = scorer.score(make_context(expected_move=0.0), 90, OptionRight.PUT, 100.5, 85, 5.0)
        assert assessment.move_ratio == 0.5

    def test_late_session_is_high_risk(self, scorer):
        assessment = scorer.score(make_context(), 90, OptionRight.PUT, None, 85, 1.0)

        assert assessment.factors["time_remaining"] == 2
        assert assessment.risk_level == RiskLevel.HIGH

    def test_score_bounds(self, scorer):
        context = make_context(regime=Regime.VOLATILE, net_drift=-5.0, expected_move=1.0)
        assessment = scorer.score(context, 90, OptionRight.PUT, 110.0, 10, 0.5)

        assert 0 <= assessment.score <= 100
        assert assessment.level == QualityLevel.AGGRESSIVE

    def test_custom_weights(self):
        weights = QualityWeights(
            move_exhaustion=0, expected_move_usage=0, wall_proximity=0,
            time_remaining=0, regime_strength=1.0, drift_alignment=0,
        )
        assessment = QualityScorer(weights).score(make_context(), 90, OptionRight.PUT, None, 85, 5.0)
        assert assessment.score == 70


class TestLadders:
    @pytest.mark.parametrize(
        "ratio,expected", [(0, 10), (0.3, 10), (0.31, 8), (0.6, 8), (1.0, 6), (1.5, 3), (1.51, 1)]
    )
    def test_move_exhaustion(self, ratio, expected):
        assert score_move_exhaustion(ratio) == expected

    @pytest.mark.parametrize(
        "ratio,expected", [(0, 10), (0.2, 8), (0.5, 6), (0.7, 4), (1.0, 2), (1.2, 0)]
    )
    def test_expected_move_usage(self, ratio, expected):
        assert score_expected_move_usage(ratio) == expected

    @pytest.mark.parametrize("distance,expected", [(0, 10), (5, 10), (10, 8), (20, 6), (35, 4), (36, 2)])
    def test_wall_proximity(self, distance, expected):
        assert score_wall_proximity(distance) == expected

    @pytest.mark.parametrize("hours,expected", [(6, 10), (4, 10), (3.5, 8), (2.5, 6), (1.5, 4), (1.0, 2)])
    def test_time_remaining(self, hours, expected):
        assert score_time_remaining(hours) == expected

    @pytest.mark.parametrize(
        "regime,total,expected",
        [
            (Regime.STABLE, 2e9, 10),
            (Regime.STABLE, 5e8, 8),
            (Regime.STABLE, 1e6, 7),
            (Regime.NEUTRAL, 0, 5),
            (Regime.VOLATILE, -2e9, 2),
        ],
    )
    def test_regime_strength(self, regime, total, expected):
        assert score_regime_strength(regime, total) == expected

    @pytest.mark.parametrize(
        "drift,expected", [(1.0, 10), (0.5, 8), (0.0, 6), (-0.5, 3), (-1.0, 0)]
    )
    def test_drift_alignment(self, drift, expected):
        assert score_drift_alignment(drift) == expected


@pytest.mark.parametrize(
    "score,expected",
    [(100, QualityLevel.PREMIUM), (80, QualityLevel.PREMIUM), (79, QualityLevel.STANDARD),
     (60, QualityLevel.STANDARD), (59, QualityLevel.AGGRESSIVE)],
)
def test_quality_level(score, expected):
    assert quality_level(score) == expected


def test_risk_level():
    assert risk_level(0.2, 5.0, 5) == RiskLevel.LOW
    assert risk_level(1.2, 5.0, 5) == RiskLevel.MEDIUM
    assert risk_level(0.2, 2.0, 5) == RiskLevel.MEDIUM
    assert risk_level(0.2, 5.0, 40) == RiskLevel.MEDIUM
    assert risk_level(1.6, 5.0, 5) == RiskLevel.HIGH


def test_weaker(scorer):
    strong = scorer.score(make_context(), 90, OptionRight.PUT, None, 85, 5.0)
    weak = scorer.score(make_context(), 90, OptionRight.PUT, None, 85, 1.0)

    assert weaker(strong, weak) is weak
    assert weaker(weak, strong) is weak
    assert weaker(strong, strong) is strong
