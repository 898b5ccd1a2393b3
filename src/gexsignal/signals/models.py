"""
Trade Signal Data Models

Credit spread alerts produced by the signal generator and consumed by the
alert repository and backtest engine.

Key patterns:
- dataclass(frozen=True, slots=True): alerts are never mutated after creation
- str Enums for JSON / Delta Lake serialization
- to_dict() / from_dict() for persistence round trips
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from gexsignal.core.models import OptionRight, Regime

WARNING_ID_PREFIX = "warning-"


class StrategyType(str, Enum):
    """Credit spread strategies supported by the generator."""

    BULL_PUT_SPREAD = "bull_put_spread"
    BEAR_CALL_SPREAD = "bear_call_spread"
    IRON_CONDOR = "iron_condor"
    REGIME_WARNING = "regime_warning"    # Legless WATCH alert, never traded

    @property
    def label(self) -> str:
        return STRATEGY_LABELS[self]

    @property
    def code(self) -> str:
        return STRATEGY_CODES[self]


STRATEGY_LABELS = {
    StrategyType.BULL_PUT_SPREAD: "Bull Put Spread",
    StrategyType.BEAR_CALL_SPREAD: "Bear Call Spread",
    StrategyType.IRON_CONDOR: "Iron Condor",
    StrategyType.REGIME_WARNING: "Volatility Warning",
}

STRATEGY_CODES = {
    StrategyType.BULL_PUT_SPREAD: "bps",
    StrategyType.BEAR_CALL_SPREAD: "bcs",
    StrategyType.IRON_CONDOR: "ic",
    StrategyType.REGIME_WARNING: "warning",
}


class LegAction(str, Enum):
    """Leg action enum (BUY or SELL)."""

    BUY = "BUY"
    SELL = "SELL"


class AlertStatus(str, Enum):
    """
    Alert status enum.

    ACTIVE: tradeable now
    WATCH: short strike inside the expected move band, or a regime warning
    CANCELLED / EXPIRED: closed out (EXPIRED is set on settlement)
    """

    ACTIVE = "ACTIVE"
    WATCH = "WATCH"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class QualityLevel(str, Enum):
    PREMIUM = "PREMIUM"
    STANDARD = "STANDARD"
    AGGRESSIVE = "AGGRESSIVE"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TradeResult(str, Enum):
    """Outcome of a settled or backtested alert."""

    WIN = "WIN"
    LOSS = "LOSS"
    OPEN = "OPEN"


@dataclass(frozen=True, slots=True)
class TradeLeg:
    """One option leg of a spread."""

    action: LegAction
    type: OptionRight
    strike: float
    price: float
    delta: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "type": self.type.value,
            "strike": self.strike,
            "price": self.price,
            "delta": self.delta,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TradeLeg":
        return cls(
            action=LegAction(data["action"]),
            type=OptionRight(data["type"]),
            strike=float(data["strike"]),
            price=float(data["price"]),
            delta=float(data.get("delta", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class GEXContext:
    """Snapshot of the GEX metrics an alert was generated from."""

    regime: Regime
    total_gex: float
    gamma_flip: float
    call_wall: float
    put_wall: float
    net_drift: float
    net_vanna: float
    expected_move: float
    current_price: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "regime": self.regime.value,
            "total_gex": self.total_gex,
            "gamma_flip": self.gamma_flip,
            "call_wall": self.call_wall,
            "put_wall": self.put_wall,
            "net_drift": self.net_drift,
            "net_vanna": self.net_vanna,
            "expected_move": self.expected_move,
            "current_price": self.current_price,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GEXContext":
        return cls(
            regime=Regime(data["regime"]),
            total_gex=float(data["total_gex"]),
            gamma_flip=float(data["gamma_flip"]),
            call_wall=float(data["call_wall"]),
            put_wall=float(data["put_wall"]),
            net_drift=float(data["net_drift"]),
            net_vanna=float(data["net_vanna"]),
            expected_move=float(data["expected_move"]),
            current_price=float(data["current_price"]),
        )


@dataclass(frozen=True, slots=True)
class QualityAssessment:
    """
    Multi-factor quality score of a spread.

    factors holds the six 0-10 factor scores keyed by factor name.
    """

    score: int
    level: QualityLevel
    risk_level: RiskLevel
    factors: dict[str, float]
    move_ratio: float
    wall_distance: float
    hours_remaining: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level.value,
            "risk_level": self.risk_level.value,
            "factors": dict(self.factors),
            "move_ratio": self.move_ratio,
            "wall_distance": self.wall_distance,
            "hours_remaining": self.hours_remaining,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QualityAssessment":
        return cls(
            score=int(data["score"]),
            level=QualityLevel(data["level"]),
            risk_level=RiskLevel(data["risk_level"]),
            factors={k: float(v) for k, v in data["factors"].items()},
            move_ratio=float(data["move_ratio"]),
            wall_distance=float(data["wall_distance"]),
            hours_remaining=float(data["hours_remaining"]),
        )


@dataclass(frozen=True, slots=True)
class TradeAlert:
    """
    Credit spread trade alert.

    Warning alerts (regime warnings) have no legs, status WATCH and an id
    starting with 'warning-'; they are never persisted or backtested.
    """

    id: str
    strategy: StrategyType
    underlying: str
    expiration: str
    legs: tuple[TradeLeg, ...]
    net_credit: float
    max_loss: float
    max_profit: float
    probability: float
    risk_reward: str
    rationale: str
    status: AlertStatus
    gex_context: GEXContext
    generated_at: datetime
    valid_until: datetime
    quality: Optional[QualityAssessment] = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def strategy_label(self) -> str:
        return self.strategy.label

    @property
    def is_warning(self) -> bool:
        return self.id.startswith(WARNING_ID_PREFIX)

    @property
    def quality_score(self) -> int:
        return self.quality.score if self.quality else 0

    @property
    def quality_level(self) -> Optional[QualityLevel]:
        return self.quality.level if self.quality else None

    @property
    def risk_level(self) -> Optional[RiskLevel]:
        return self.quality.risk_level if self.quality else None

    def short_strike(self, right: OptionRight) -> Optional[float]:
        """Strike of the sold leg on one side, if the alert has one."""
        for leg in self.legs:
            if leg.action == LegAction.SELL and leg.type == right:
                return leg.strike
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "strategy": self.strategy.value,
            "strategy_label": self.strategy_label,
            "underlying": self.underlying,
            "expiration": self.expiration,
            "legs": [leg.to_dict() for leg in self.legs],
            "net_credit": self.net_credit,
            "max_loss": self.max_loss,
            "max_profit": self.max_profit,
            "probability": self.probability,
            "risk_reward": self.risk_reward,
            "rationale": self.rationale,
            "status": self.status.value,
            "gex_context": self.gex_context.to_dict(),
            "generated_at": self.generated_at.isoformat(),
            "valid_until": self.valid_until.isoformat(),
            "quality": self.quality.to_dict() if self.quality else None,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TradeAlert":
        quality = data.get("quality")
        return cls(
            id=data["id"],
            strategy=StrategyType(data["strategy"]),
            underlying=data["underlying"],
            expiration=data["expiration"],
            legs=tuple(TradeLeg.from_dict(leg) for leg in data.get("legs", [])),
            net_credit=float(data["net_credit"]),
            max_loss=float(data["max_loss"]),
            max_profit=float(data["max_profit"]),
            probability=float(data["probability"]),
            risk_reward=data["risk_reward"],
            rationale=data["rationale"],
            status=AlertStatus(data["status"]),
            gex_context=GEXContext.from_dict(data["gex_context"]),
            generated_at=datetime.fromisoformat(data["generated_at"]),
            valid_until=datetime.fromisoformat(data["valid_until"]),
            quality=QualityAssessment.from_dict(quality) if quality else None,
            tags=tuple(data.get("tags", [])),
        )

    def __repr__(self) -> str:
        return (
            f"TradeAlert(id={self.id}, strategy={self.strategy.value}, "
            f"credit={self.net_credit:.2f}, status={self.status.value}, "
            f"quality={self.quality_score})"
        )
