"""Credit spread signal generation: models, trading window, quality scoring and chain providers."""

from gexsignal.signals.models import (
    AlertStatus,
    GEXContext,
    LegAction,
    QualityAssessment,
    QualityLevel,
    RiskLevel,
    StrategyType,
    TradeAlert,
    TradeLeg,
    TradeResult,
)
from gexsignal.signals.quality import QualityScorer
from gexsignal.signals.trading_window import TradingWindow, WindowState, WindowStatus

__all__ = [
    "AlertStatus",
    "GEXContext",
    "LegAction",
    "QualityAssessment",
    "QualityLevel",
    "QualityScorer",
    "RiskLevel",
    "StrategyType",
    "TradeAlert",
    "TradeLeg",
    "TradeResult",
    "TradingWindow",
    "WindowState",
    "WindowStatus",
]
