"""
Tests for the snapshot replay backtest engine.
"""

import json
from datetime import datetime

import pytest

from gexsignal.backtest.engine import BacktestEngine, evaluate_signal, summarize
from gexsignal.backtest.models import SnapshotPoint
from gexsignal.config.engine_config import BacktestSettings
from gexsignal.core.chain_parser import parse_chain
from gexsignal.core.models import OptionRight, Regime
from gexsignal.exceptions import NoSnapshotDataError
from gexsignal.signals.models import (
    AlertStatus,
    GEXContext,
    LegAction,
    StrategyType,
    TradeAlert,
    TradeLeg,
    TradeResult,
)
from gexsignal.storage.snapshot_store import SnapshotStore

CONTEXT = GEXContext(
    regime=Regime.STABLE, total_gex=1e9, gamma_flip=90, call_wall=110, put_wall=90,
    net_drift=0.0, net_vanna=0.0, expected_move=4.0, current_price=100.0,
)


def make_alert(strategy, put=None, call=None, credit=1.0, max_loss=4.0):
    legs = []
    if put is not None:
        legs += [TradeLeg(LegAction.SELL, OptionRight.PUT, put, 1.5), TradeLeg(LegAction.BUY, OptionRight.PUT, put - 5, 0.5)]
    if call is not None:
        legs += [TradeLeg(LegAction.SELL, OptionRight.CALL, call, 1.5), TradeLeg(LegAction.BUY, OptionRight.CALL, call + 5, 0.5)]
    now = datetime(2026, 10, 19, 10, 0)
    return TradeAlert(
        id=f"{strategy.code}-TEST", strategy=strategy, underlying="SPX", expiration="2026-10-19",
        legs=tuple(legs), net_credit=credit, max_loss=max_loss, max_profit=credit, probability=80.0,
        risk_reward="1:4.0", rationale="test", status=AlertStatus.ACTIVE, gex_context=CONTEXT,
        generated_at=now, valid_until=now,
    )


def points(*prices, day="2026-10-19", start_hour=14):
    return [
        SnapshotPoint(time=f"{day}T{start_hour + i:02d}:00:00+00:00", price=price)
        for i, price in enumerate(prices)
    ]


class TestEvaluateSignal:
    def test_put_breach_is_loss(self):
        alert = make_alert(StrategyType.BULL_PUT_SPREAD, put=95)
        snapshots = points(100, 94, 90)

        signal = evaluate_signal(alert, 0, snapshots)

        assert signal.result == TradeResult.LOSS
        assert signal.exit_price == 94
        assert signal.exit_time == snapshots[1].time
        assert signal.pnl == -400.0
        assert signal.short_strike == 95

    def test_touching_strike_is_loss(self):
        alert = make_alert(StrategyType.BULL_PUT_SPREAD, put=95)
        assert evaluate_signal(alert, 0, points(100, 95)).result == TradeResult.LOSS

    def test_condor_survives_day(self):
        alert = make_alert(StrategyType.IRON_CONDOR, put=90, call=110)

        signal = evaluate_signal(alert, 0, points(100, 99, 101))

        assert signal.result == TradeResult.WIN
        assert signal.exit_price == 101
        assert signal.pnl == 100.0
        assert signal.short_strike == 90
        assert signal.short_call_strike == 110

    def test_call_breach(self):
        alert = make_alert(StrategyType.BEAR_CALL_SPREAD, call=105)

        signal = evaluate_signal(alert, 0, points(100, 106))

        assert signal.result == TradeResult.LOSS
        assert signal.short_strike == 105
        assert signal.short_call_strike is None

    def test_last_snapshot_is_open(self):
        alert = make_alert(StrategyType.BULL_PUT_SPREAD, put=95)

        signal = evaluate_signal(alert, 2, points(100, 99, 98))

        assert signal.result == TradeResult.OPEN
        assert signal.exit_price == 98
        assert signal.pnl == 0.0

    def test_next_day_not_evaluated(self):
        alert = make_alert(StrategyType.BULL_PUT_SPREAD, put=95)
        snapshots = points(100) + points(80, day="2026-10-20")

        assert evaluate_signal(alert, 0, snapshots).result == TradeResult.OPEN

    def test_win_until_day_boundary(self):
        alert = make_alert(StrategyType.BULL_PUT_SPREAD, put=95)
        snapshots = points(100, 99) + points(80, day="2026-10-20")

        signal = evaluate_signal(alert, 0, snapshots)

        assert signal.result == TradeResult.WIN
        assert signal.exit_price == 99


def test_summarize():
    alert = make_alert(StrategyType.BULL_PUT_SPREAD, put=95)
    snapshots = points(100, 99, 94)
    signals = [
        evaluate_signal(alert, 0, snapshots),
        evaluate_signal(alert, 2, snapshots),
    ]

    summary = summarize("SPX", signals, snapshots)

    assert summary.total_trades == 1
    assert summary.losses == 1
    assert summary.open_trades == 1
    assert summary.win_rate == 0.0
    assert summary.period_start == snapshots[0].time
    assert summary.period_end == snapshots[-1].time


def test_summarize_empty():
    summary = summarize("SPX", [], [])

    assert summary.total_trades == 0
    assert summary.win_rate == 0.0
    assert summary.period_start is None


class TestBacktestEngine:
    """Replay over three same-day snapshots: 100 -> 89 -> 88."""

    @pytest.fixture
    async def store(self, lake_path, stable_chain):
        store = SnapshotStore(str(lake_path / "option_snapshots"))
        await store.initialize()
        contracts = parse_chain(stable_chain).contracts
        for time, price in [
            ("2026-10-19T14:00:00+00:00", 100.0),
            ("2026-10-19T15:00:00+00:00", 89.0),
            ("2026-10-19T16:00:00+00:00", 88.0),
        ]:
            await store.write_snapshot("SPX", time, price, contracts)
        return store

    @pytest.mark.asyncio
    async def test_run(self, store):
        result = await BacktestEngine(store).run("SPX")

        assert [(s.alert_id, s.entry_price) for s in result.signals] == [
            ("ic-SPX-2026-10-19-90-110", 100.0),
            ("bps-SPX-2026-10-19-90", 100.0),
            ("bcs-SPX-2026-10-19-110", 100.0),
            ("bcs-SPX-2026-10-19-110", 89.0),
            ("bcs-SPX-2026-10-19-110", 88.0),
        ]

        condor, bull_put, first_call, second_call, last_call = result.signals
        assert condor.result == TradeResult.LOSS
        assert condor.exit_price == 89.0
        assert condor.pnl == -420.0
        assert bull_put.pnl == -460.0
        assert first_call.result == TradeResult.WIN
        assert first_call.exit_price == 88.0
        assert first_call.pnl == 40.0
        assert second_call.result == TradeResult.WIN
        assert second_call.pnl == 40.0
        assert last_call.result == TradeResult.OPEN
        assert last_call.pnl == 0.0

        summary = result.summary
        assert summary.total_snapshots == 3
        assert summary.total_trades == 4
        assert summary.wins == 2
        assert summary.losses == 2
        assert summary.open_trades == 1
        assert summary.win_rate == 50.0
        assert summary.total_pnl == -800.0

    @pytest.mark.asyncio
    async def test_repeated_alert_ids_counted_once_when_deduped(self, store):
        every_alert = await BacktestEngine(store).run("SPX")
        deduped = await BacktestEngine(store, settings=BacktestSettings(dedupe_alert_ids=True)).run("SPX")

        # bcs-110 is generated again at 89 and 88
        assert len(every_alert.signals) == 5
        assert [s.alert_id for s in deduped.signals] == [
            "ic-SPX-2026-10-19-90-110",
            "bps-SPX-2026-10-19-90",
            "bcs-SPX-2026-10-19-110",
        ]
        assert deduped.summary.total_trades == 3
        assert deduped.summary.win_rate == 33.3
        assert deduped.summary.total_pnl == -840.0

    @pytest.mark.asyncio
    async def test_no_snapshots(self, lake_path):
        engine = BacktestEngine(SnapshotStore(str(lake_path / "empty")))

        with pytest.raises(NoSnapshotDataError, match="No snapshot data found for SPX"):
            await engine.run("SPX")

    @pytest.mark.asyncio
    async def test_stats(self, store):
        stats = await BacktestEngine(store).get_stats("SPX")
        assert stats["total_snapshots"] == 3

    @pytest.mark.asyncio
    async def test_write_report(self, store, tmp_path):
        engine = BacktestEngine(store, settings=BacktestSettings(reports_dir=str(tmp_path / "reports")))
        result = await engine.run("SPX")

        path = engine.write_report(result)

        report = json.loads(path.read_text())
        assert path.name.startswith("backtest_SPX_")
        assert report["summary"]["total_pnl"] == -800.0
        assert len(report["signals"]) == 5
