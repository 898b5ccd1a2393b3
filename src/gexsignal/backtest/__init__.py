"""Snapshot replay backtesting."""

from gexsignal.backtest.engine import BacktestEngine, evaluate_signal, summarize
from gexsignal.backtest.models import BacktestResult, BacktestSignal, BacktestSummary, SnapshotPoint

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "BacktestSignal",
    "BacktestSummary",
    "SnapshotPoint",
    "evaluate_signal",
    "summarize",
]
