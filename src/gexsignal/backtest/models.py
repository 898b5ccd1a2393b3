"""
Backtest Result Models

Read-only records produced by the backtest engine.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from gexsignal.signals.models import TradeResult


@dataclass(frozen=True, slots=True)
class SnapshotPoint:
    """One recorded snapshot: time and underlying price."""

    time: str
    price: float

    @property
    def day(self) -> str:
        return self.time[:10]


@dataclass(frozen=True, slots=True)
class BacktestSignal:
    """
    One simulated trade.

    Attributes:
        time: Snapshot time the alert was generated at
        entry_price: Underlying price at entry
        strategy: Strategy value (bull_put_spread, ...)
        alert_id: Deterministic alert id
        short_strike: Short put (or short call for bear call spreads)
        short_call_strike: Short call of an iron condor
        credit: Net credit per share
        max_loss: Max loss per share
        result: WIN, LOSS or OPEN
        exit_price: Underlying price at exit (entry price when OPEN)
        exit_time: Snapshot time of exit
        pnl: Dollar P&L per contract
        quality: Quality score at entry
    """

    time: str
    entry_price: float
    strategy: str
    alert_id: str
    short_strike: Optional[float]
    credit: float
    max_loss: float
    result: TradeResult
    exit_price: float
    exit_time: str
    pnl: float
    quality: int
    short_call_strike: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "entry_price": self.entry_price,
            "strategy": self.strategy,
            "alert_id": self.alert_id,
            "short_strike": self.short_strike,
            "short_call_strike": self.short_call_strike,
            "credit": self.credit,
            "max_loss": self.max_loss,
            "result": self.result.value,
            "exit_price": self.exit_price,
            "exit_time": self.exit_time,
            "pnl": self.pnl,
            "quality": self.quality,
        }


@dataclass(frozen=True, slots=True)
class BacktestSummary:
    symbol: str
    total_snapshots: int
    total_trades: int
    wins: int
    losses: int
    win_rate: float
    total_pnl: float
    period_start: Optional[str]
    period_end: Optional[str]
    open_trades: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "total_snapshots": self.total_snapshots,
            "total_trades": self.total_trades,
            "wins": self.wins,
            "losses": self.losses,
            "open_trades": self.open_trades,
            "win_rate": self.win_rate,
            "total_pnl": self.total_pnl,
            "period_start": self.period_start,
            "period_end": self.period_end,
        }


@dataclass(frozen=True, slots=True)
class BacktestResult:
    summary: BacktestSummary
    signals: list[BacktestSignal] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "signals": [signal.to_dict() for signal in self.signals],
        }
