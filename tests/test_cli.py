"""
Tests for the gexsignal command line interface.
"""

import json
import sys

import pytest
import yaml
from loguru import logger

from gexsignal.cli import main

NOW = "2026-10-19T11:00:00"


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def chains_dir(tmp_path, stable_chain):
    directory = tmp_path / "chains"
    directory.mkdir()
    (directory / "SPX.json").write_text(json.dumps(stable_chain))
    return directory


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "engine_config.yaml"
    path.write_text(yaml.safe_dump({
        "storage": {
            "snapshots_path": str(tmp_path / "lake" / "option_snapshots"),
            "alerts_path": str(tmp_path / "lake" / "trade_alerts"),
        },
        "backtest": {"reports_dir": str(tmp_path / "reports")},
        "logging": {"level": "WARNING", "log_file": None},
    }))
    return str(path)


def run(capsys, config_path, *args):
    code = main(["--config", config_path, *args])
    return code, capsys.readouterr().out


def test_metrics(capsys, config_path, chains_dir):
    code, out = run(capsys, config_path, "metrics", "SPX", "--chains", str(chains_dir), "--now", NOW)

    metrics = json.loads(out)["SPX"]
    assert code == 0
    assert metrics["gamma_flip"] == 87.5
    assert metrics["regime"] == "stable"
    assert "gamma_profile" not in metrics


def test_signals_persist_and_history(capsys, config_path, chains_dir):
    code, out = run(
        capsys, config_path, "signals", "SPX", "--chains", str(chains_dir), "--now", NOW, "--persist"
    )
    assert code == 0
    assert len(json.loads(out)["SPX"]) == 3

    code, out = run(capsys, config_path, "history", "2026-10-19", "--symbol", "SPX")
    assert code == 0
    assert {alert["id"] for alert in json.loads(out)} == {
        "ic-SPX-2026-10-19-90-110",
        "bps-SPX-2026-10-19-90",
        "bcs-SPX-2026-10-19-110",
    }


def test_settle(capsys, config_path, chains_dir):
    run(capsys, config_path, "signals", "SPX", "--chains", str(chains_dir), "--now", NOW, "--persist")

    code, _ = run(capsys, config_path, "settle", "bps-SPX-2026-10-19-90", "WIN", "--pnl", "40", "--price", "101")
    assert code == 0

    code, _ = run(capsys, config_path, "settle", "missing", "LOSS", "--pnl", "-460", "--price", "89")
    assert code == 1

    code, out = run(capsys, config_path, "stats")
    assert json.loads(out)["alerts"]["by_result"] == {"WIN": 1}


def test_record_and_backtest(capsys, config_path, chains_dir, tmp_path):
    code, out = run(
        capsys, config_path, "record", "SPX", "--chains", str(chains_dir), "--now", "2026-10-19T15:00:00+00:00"
    )
    assert code == 0
    assert json.loads(out) == {"SPX": 14}

    code, out = run(capsys, config_path, "backtest", "SPX", "--report")
    summary = json.loads(out)
    assert code == 0
    assert summary["total_snapshots"] == 1
    assert summary["open_trades"] == 3
    assert len(list((tmp_path / "reports").glob("backtest_SPX_*.json"))) == 1


def test_backtest_without_data(capsys, config_path):
    code, _ = run(capsys, config_path, "backtest", "SPX")
    assert code == 1


def test_invalid_config(capsys, tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"gex": {"contract_multiplier": 0}}))

    assert main(["--config", str(path), "stats"]) == 2
    assert "Configuration error" in capsys.readouterr().err
