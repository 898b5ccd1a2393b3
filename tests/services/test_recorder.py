"""
Tests for DataRecorder.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from gexsignal.config.engine_config import StorageSettings
from gexsignal.core.models import OptionContract, OptionRight
from gexsignal.services.recorder import DataRecorder, is_active_contract
from gexsignal.signals.providers import StaticChainProvider
from gexsignal.signals.trading_window import TradingWindow
from gexsignal.storage.snapshot_store import SnapshotStore

SNAPSHOT_TIME = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(lake_path):
    return SnapshotStore(str(lake_path / "option_snapshots"))


@pytest.mark.parametrize(
    "volume,oi,expected",
    [(10, 0, True), (0, 101, True), (0, 100, False), (0, 0, False)],
)
def test_is_active_contract(volume, oi, expected):
    contract = OptionContract(strike=100, type=OptionRight.CALL, volume=volume, open_interest=oi)
    assert is_active_contract(contract) is expected


class TestRecordOnce:
    @pytest.mark.asyncio
    async def test_records_chain(self, store, stable_chain):
        recorder = DataRecorder(StaticChainProvider({"SPX": stable_chain}), store, ["SPX"])

        written = await recorder.record_once(SNAPSHOT_TIME)

        assert written == {"SPX": 14}
        assert await store.list_snapshots("SPX") == [("2026-10-19T15:00:00+00:00", 100.0)]

    @pytest.mark.asyncio
    async def test_inactive_contracts_dropped(self, store, stable_chain):
        stable_chain["calls"][0]["volume"] = 0
        stable_chain["calls"][0]["open_interest"] = 50
        recorder = DataRecorder(StaticChainProvider({"SPX": stable_chain}), store, ["SPX"])

        assert await recorder.record_once(SNAPSHOT_TIME) == {"SPX": 13}

    @pytest.mark.asyncio
    async def test_aliases(self, store, stable_chain):
        provider = StaticChainProvider({"$SPX": stable_chain})
        recorder = DataRecorder(provider, store, ["SPX"], symbol_aliases={"SPX": ["$SPX", "SPX"]})

        assert await recorder.record_once(SNAPSHOT_TIME) == {"SPX": 14}
        assert (await store.get_stats())["symbols"] == ["SPX"]

    @pytest.mark.asyncio
    async def test_missing_chain(self, store):
        recorder = DataRecorder(StaticChainProvider(), store, ["SPX"])
        assert await recorder.record_once(SNAPSHOT_TIME) == {"SPX": 0}

    @pytest.mark.asyncio
    async def test_one_symbol_failure_isolated(self, store, stable_chain):
        provider = StaticChainProvider({"SPX": stable_chain, "NDX": ["not", "a", "chain"]})
        recorder = DataRecorder(provider, store, ["NDX", "SPX"])

        assert await recorder.record_once(SNAPSHOT_TIME) == {"NDX": 0, "SPX": 14}

    @pytest.mark.asyncio
    async def test_window_closed(self, store, stable_chain):
        provider = StaticChainProvider({"SPX": stable_chain})
        recorder = DataRecorder(provider, store, ["SPX"], window=TradingWindow())

        # Saturday
        assert await recorder.record_once(datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc)) == {}
        assert provider.requests == []


@pytest.mark.asyncio
async def test_start_stop(store, stable_chain):
    recorder = DataRecorder(
        StaticChainProvider({"SPX": stable_chain}),
        store,
        ["SPX"],
        settings=StorageSettings(record_interval_seconds=60),
    )

    await recorder.start()
    await asyncio.sleep(0.2)
    await recorder.stop()

    assert recorder._task.done()
    assert (await store.get_stats())["total_snapshots"] == 1
