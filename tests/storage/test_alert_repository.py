"""
Tests for AlertRepository Delta Lake persistence.
"""

import json

import pytest

from gexsignal.analytics.gex_calculator import GammaExposureCalculator
from gexsignal.core.chain_parser import parse_chain
from gexsignal.signals.generator import TradeSignalGenerator
from gexsignal.signals.models import AlertStatus, TradeResult
from gexsignal.storage import alert_repository
from gexsignal.storage.alert_repository import AlertRepository, exit_criteria
from tests.fixtures.chain_fixtures import MARKET_NOW

DAY = "2026-10-19"


@pytest.fixture
def alerts(stable_chain, volatile_chain):
    """IC, BPS and BCS from the stable chain plus a volatility warning."""
    generator = TradeSignalGenerator()
    calculator = GammaExposureCalculator()
    result = []
    for payload in (stable_chain, volatile_chain):
        chain = parse_chain(payload)
        metrics = calculator.compute_metrics(chain, MARKET_NOW)
        result.extend(generator.generate_from_data("SPX", metrics, chain, DAY, MARKET_NOW))
    return result


@pytest.fixture
async def repository(lake_path):
    repo = AlertRepository(str(lake_path / "trade_alerts"))
    await repo.initialize()
    return repo


class TestInsert:
    @pytest.mark.asyncio
    async def test_insert_skips_warnings(self, repository, alerts):
        written = await repository.insert_if_absent(alerts)

        assert written == 3
        assert (await repository.get_stats())["total_alerts"] == 3

    @pytest.mark.asyncio
    async def test_idempotent(self, repository, alerts):
        await repository.insert_if_absent(alerts)
        assert await repository.insert_if_absent(alerts) == 0
        assert (await repository.get_stats())["total_alerts"] == 3

    @pytest.mark.asyncio
    async def test_duplicate_ids_in_batch(self, repository, alerts):
        assert await repository.insert_if_absent([alerts[1], alerts[1]]) == 1

    @pytest.mark.asyncio
    async def test_empty(self, repository):
        assert await repository.insert_if_absent([]) == 0

    @pytest.mark.asyncio
    async def test_failed_write_does_not_block_others(self, repository, alerts, monkeypatch):
        real_write = alert_repository.write_deltalake

        def flaky_write(path, table, **kwargs):
            if table.column("id")[0].as_py() == alerts[1].id:
                raise OSError("disk full")
            return real_write(path, table, **kwargs)

        monkeypatch.setattr(alert_repository, "write_deltalake", flaky_write)

        assert await repository.insert_if_absent(alerts[:3]) == 2
        assert await repository.get_alert(alerts[1].id) is None
        assert await repository.get_alert(alerts[2].id) is not None

    @pytest.mark.asyncio
    async def test_creates_table_on_first_insert(self, lake_path, alerts):
        repo = AlertRepository(str(lake_path / "nested" / "trade_alerts"))
        assert await repo.insert_if_absent(alerts[:1]) == 1


class TestQueries:
    @pytest.mark.asyncio
    async def test_row_columns(self, repository, alerts):
        await repository.insert_if_absent(alerts)
        row = await repository.get_alert_row("bps-SPX-2026-10-19-90")

        assert row["strategy"] == "bull_put_spread"
        assert row["alert_date"] == DAY
        assert row["status"] == "ACTIVE"
        assert row["net_credit"] == 0.4
        assert row["quality_score"] == 93
        assert row["quality_level"] == "PREMIUM"
        assert row["risk_level"] == "LOW"
        assert row["result"] is None
        assert json.loads(row["quality_metadata"])["score"] == 93
        assert json.loads(row["exit_criteria"])["breach_strikes"] == {"PUT": 90.0}

    @pytest.mark.asyncio
    async def test_get_alert_round_trip(self, repository, alerts):
        await repository.insert_if_absent(alerts)

        stored = await repository.get_alert(alerts[0].id)

        assert stored == alerts[0]
        assert await repository.get_alert("missing") is None

    @pytest.mark.asyncio
    async def test_alerts_for_day(self, repository, alerts):
        await repository.insert_if_absent(alerts)

        assert len(await repository.get_alerts_for_day(DAY)) == 3
        assert len(await repository.get_alerts_for_day(DAY, "SPX")) == 3
        assert await repository.get_alerts_for_day(DAY, "NDX") == []
        assert await repository.get_alerts_for_day("2026-10-20") == []

    @pytest.mark.asyncio
    async def test_missing_table_reads_empty(self, lake_path):
        repo = AlertRepository(str(lake_path / "absent"))

        assert await repo.get_alerts_for_day(DAY) == []
        assert (await repo.get_stats())["total_alerts"] == 0


class TestSettle:
    @pytest.mark.asyncio
    async def test_settle(self, repository, alerts):
        await repository.insert_if_absent(alerts)

        assert await repository.settle("bps-SPX-2026-10-19-90", TradeResult.WIN, 40.0, 101.25)

        row = await repository.get_alert_row("bps-SPX-2026-10-19-90")
        assert row["status"] == AlertStatus.EXPIRED.value
        assert row["result"] == "WIN"
        assert row["realized_pnl"] == 40.0
        assert row["closed_at_price"] == 101.25
        assert row["settled_at"] is not None

        untouched = await repository.get_alert_row("bcs-SPX-2026-10-19-110")
        assert untouched["status"] == "ACTIVE"
        assert untouched["result"] is None

    @pytest.mark.asyncio
    async def test_settle_unknown(self, repository):
        assert not await repository.settle("nope", TradeResult.LOSS, -460.0, 89.0)

    @pytest.mark.asyncio
    async def test_stats_after_settle(self, repository, alerts):
        await repository.insert_if_absent(alerts)
        await repository.settle("bps-SPX-2026-10-19-90", TradeResult.LOSS, -460.0, 89.0)

        stats = await repository.get_stats()

        assert stats["by_status"] == {"ACTIVE": 2, "EXPIRED": 1}
        assert stats["by_result"] == {"LOSS": 1}


def test_exit_criteria(alerts):
    criteria = exit_criteria(alerts[0])

    assert criteria["profit_target"] == 0.4
    assert criteria["stop_loss"] == 1.6
    assert criteria["breach_strikes"] == {"PUT": 90.0, "CALL": 110.0}
    assert criteria["time_exit"] == "15:45"
