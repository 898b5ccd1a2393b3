"""
Backtest Engine

Replays recorded chain snapshots through the live signal pipeline and
grades every alert against the rest of that trading day.

Replay:
1. Snapshots listed in ascending time; snapshots without a positive price
   or without rows are skipped
2. Chain rebuilt from stored rows -> GEX metrics -> generate_from_data()
   with the snapshot's own day and time
3. Each non-warning alert is evaluated forward within the same day:
   - LOSS: first later snapshot breaching a short strike
     (PUT: price <= short put, CALL: price >= short call)
   - WIN: day ends without a breach (exit at the day's last snapshot)
   - OPEN: no later snapshot on the same day

P&L per contract: WIN +credit * 100, LOSS -max_loss * 100, OPEN 0.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from gexsignal.analytics.gex_calculator import GammaExposureCalculator
from gexsignal.backtest.models import BacktestResult, BacktestSignal, BacktestSummary, SnapshotPoint
from gexsignal.config.engine_config import BacktestSettings
from gexsignal.core.market_time import parse_timestamp
from gexsignal.core.models import OptionRight
from gexsignal.exceptions import NoSnapshotDataError
from gexsignal.signals.generator import TradeSignalGenerator
from gexsignal.signals.models import StrategyType, TradeAlert, TradeResult
from gexsignal.storage.snapshot_store import SnapshotStore, snapshot_to_chain

CONTRACT_MULTIPLIER = 100


def evaluate_signal(alert: TradeAlert, entry_index: int, snapshots: list[SnapshotPoint]) -> BacktestSignal:
    """
    Grade one alert against the snapshots that follow it on the same day.

    Args:
        alert: Alert generated at snapshots[entry_index]
        entry_index: Index of the entry snapshot
        snapshots: All replayed snapshots, ascending by time
    """
    entry = snapshots[entry_index]
    short_put = alert.short_strike(OptionRight.PUT)
    short_call = alert.short_strike(OptionRight.CALL)

    result = TradeResult.OPEN
    exit_point = entry

    for point in snapshots[entry_index + 1:]:
        if point.day != entry.day:
            break

        exit_point = point
        put_breached = short_put is not None and point.price <= short_put
        call_breached = short_call is not None and point.price >= short_call
        if put_breached or call_breached:
            result = TradeResult.LOSS
            break
        result = TradeResult.WIN

    if result == TradeResult.WIN:
        pnl = alert.net_credit * CONTRACT_MULTIPLIER
    elif result == TradeResult.LOSS:
        pnl = -alert.max_loss * CONTRACT_MULTIPLIER
    else:
        pnl = 0.0

    if alert.strategy == StrategyType.BEAR_CALL_SPREAD:
        short_strike, short_call_strike = short_call, None
    else:
        short_strike, short_call_strike = short_put, short_call

    return BacktestSignal(
        time=entry.time,
        entry_price=entry.price,
        strategy=alert.strategy.value,
        alert_id=alert.id,
        short_strike=short_strike,
        short_call_strike=short_call_strike,
        credit=alert.net_credit,
        max_loss=alert.max_loss,
        result=result,
        exit_price=exit_point.price,
        exit_time=exit_point.time,
        pnl=round(pnl, 2),
        quality=alert.quality_score,
    )


def summarize(symbol: str, signals: list[BacktestSignal], snapshots: list[SnapshotPoint]) -> BacktestSummary:
    wins = sum(1 for s in signals if s.result == TradeResult.WIN)
    losses = sum(1 for s in signals if s.result == TradeResult.LOSS)
    open_trades = sum(1 for s in signals if s.result == TradeResult.OPEN)
    total_trades = wins + losses

    return BacktestSummary(
        symbol=symbol,
        total_snapshots=len(snapshots),
        total_trades=total_trades,
        wins=wins,
        losses=losses,
        win_rate=round(wins / total_trades * 100, 1) if total_trades else 0.0,
        total_pnl=round(sum(s.pnl for s in signals), 2),
        period_start=snapshots[0].time if snapshots else None,
        period_end=snapshots[-1].time if snapshots else None,
        open_trades=open_trades,
    )


class BacktestEngine:
    """
    Replay recorded snapshots through the signal generator.

    Example:
        ```python
        engine = BacktestEngine(SnapshotStore("data/lake/option_snapshots"))
        result = await engine.run("SPX")
        print(result.summary.win_rate, result.summary.total_pnl)
        ```
    """

    def __init__(
        self,
        store: SnapshotStore,
        generator: Optional[TradeSignalGenerator] = None,
        calculator: Optional[GammaExposureCalculator] = None,
        settings: Optional[BacktestSettings] = None,
    ):
        self.store = store
        self.generator = generator or TradeSignalGenerator()
        self.calculator = calculator or self.generator.calculator
        self.settings = settings or BacktestSettings()

    async def get_stats(self, symbol: Optional[str] = None) -> dict[str, Any]:
        """Snapshot coverage available for backtesting."""
        return await self.store.get_stats(symbol)

    async def run(self, symbol: str) -> BacktestResult:
        """
        Backtest one symbol over every recorded snapshot.

        Raises:
            NoSnapshotDataError: If the symbol has no snapshots at all
        """
        listed = await self.store.list_snapshots(symbol)
        if not listed:
            raise NoSnapshotDataError(symbol)

        snapshots = [SnapshotPoint(time=t, price=float(p or 0.0)) for t, p in listed]
        valid = [point for point in snapshots if point.price > 0]
        skipped = len(snapshots) - len(valid)
        if skipped:
            logger.warning(f"Skipping {skipped} {symbol} snapshots without an underlying price")

        logger.info(f"Backtesting {symbol} over {len(valid)} snapshots")

        day_open: dict[str, float] = {}
        signals: list[BacktestSignal] = []
        seen_ids: set[str] = set()

        for index, point in enumerate(valid):
            day_open.setdefault(point.day, point.price)

            rows = await self.store.read_snapshot(symbol, point.time)
            if not rows:
                continue

            chain = snapshot_to_chain(symbol, point.price, rows)
            if chain is None:
                continue

            moment = _snapshot_moment(point.time)
            metrics = self.calculator.compute_metrics(chain, moment)
            alerts = self.generator.generate_from_data(
                symbol, metrics, chain, point.day, moment, day_open[point.day]
            )

            for alert in alerts:
                if alert.is_warning:
                    continue
                if self.settings.dedupe_alert_ids:
                    if alert.id in seen_ids:
                        continue
                    seen_ids.add(alert.id)
                signals.append(evaluate_signal(alert, index, valid))

        summary = summarize(symbol, signals, valid)
        logger.info(
            f"✓ Backtest {symbol}: {summary.total_trades} trades, "
            f"{summary.win_rate:.1f}% win rate, P&L {summary.total_pnl:+,.2f}"
        )
        return BacktestResult(summary=summary, signals=signals)

    def write_report(self, result: BacktestResult, reports_dir: Optional[str] = None) -> Path:
        """Write a JSON report and return its path."""
        directory = Path(reports_dir or self.settings.reports_dir)
        directory.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = directory / f"backtest_{result.summary.symbol.lstrip('$')}_{stamp}.json"
        with open(path, "w") as f:
            json.dump(result.to_dict(), f, indent=2)
        logger.info(f"✓ Backtest report written: {path}")
        return path


def _snapshot_moment(snapshot_time: str) -> Optional[datetime]:
    try:
        return parse_timestamp(snapshot_time)
    except ValueError:
        logger.warning(f"Unparseable snapshot time {snapshot_time!r}, using current time")
        return None
