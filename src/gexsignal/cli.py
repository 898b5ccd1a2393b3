"""
GEX Signal Engine CLI

Commands:
- metrics:  compute GEX metrics for chain JSON files
- signals:  run one signal cycle from chain JSON files
- record:   store one snapshot per symbol from chain JSON files
- backtest: replay recorded snapshots and print the summary
- stats:    snapshot and alert table statistics
- settle:   record the outcome of a persisted alert
- history:  list persisted alerts for a day

Usage:
    gexsignal metrics --chains data/chains SPX
    gexsignal backtest SPX --report
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from typing import Optional

from loguru import logger

from gexsignal.analytics.gex_calculator import GammaExposureCalculator
from gexsignal.backtest.engine import BacktestEngine
from gexsignal.config.engine_config import EngineConfig, load_engine_config
from gexsignal.exceptions import ConfigurationError, GexSignalError, NoSnapshotDataError
from gexsignal.logging_setup import setup_logging
from gexsignal.services.recorder import DataRecorder
from gexsignal.signals.generator import TradeSignalGenerator
from gexsignal.signals.models import TradeResult
from gexsignal.signals.providers import JsonFileChainProvider, fetch_with_aliases
from gexsignal.signals.quality import QualityScorer
from gexsignal.storage.alert_repository import AlertRepository
from gexsignal.storage.snapshot_store import SnapshotStore


def build_generator(
    config: EngineConfig,
    provider=None,
    repository: Optional[AlertRepository] = None,
) -> TradeSignalGenerator:
    """Wire a generator from configuration."""
    calculator = GammaExposureCalculator(config.gex, timezone=config.signals.timezone)
    return TradeSignalGenerator(
        provider=provider,
        repository=repository,
        calculator=calculator,
        scorer=QualityScorer(config.quality),
        settings=config.signals,
    )


def _parse_now(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


async def cmd_metrics(args, config: EngineConfig) -> int:
    provider = JsonFileChainProvider(args.chains)
    calculator = GammaExposureCalculator(config.gex, timezone=config.signals.timezone)
    now = _parse_now(args.now)

    for symbol in args.symbols:
        raw = await fetch_with_aliases(provider, symbol, config.signals.symbol_aliases)
        metrics = calculator.compute_metrics(raw, now)
        summary = metrics.to_dict()
        if not args.profile:
            summary.pop("gamma_profile")
        _print_json({symbol: summary})
    return 0


async def cmd_signals(args, config: EngineConfig) -> int:
    provider = JsonFileChainProvider(args.chains)
    repository = None
    if args.persist:
        repository = AlertRepository(config.storage.alerts_path)
        await repository.initialize()

    generator = build_generator(config, provider, repository)
    now = _parse_now(args.now)
    for symbol in args.symbols:
        alerts = await generator.generate_alerts(symbol, now)
        _print_json({symbol: [alert.to_dict() for alert in alerts]})
    return 0


async def cmd_record(args, config: EngineConfig) -> int:
    store = SnapshotStore(config.storage.snapshots_path)
    await store.initialize()
    recorder = DataRecorder(
        JsonFileChainProvider(args.chains),
        store,
        args.symbols,
        settings=config.storage,
        symbol_aliases=config.signals.symbol_aliases,
    )
    written = await recorder.record_once(_parse_now(args.now))
    _print_json(written)
    return 0


async def cmd_backtest(args, config: EngineConfig) -> int:
    store = SnapshotStore(config.storage.snapshots_path)
    engine = BacktestEngine(store, build_generator(config), settings=config.backtest)

    try:
        result = await engine.run(args.symbol)
    except NoSnapshotDataError as e:
        logger.error(str(e))
        return 1

    _print_json(result.to_dict() if args.signals else result.summary.to_dict())
    if args.report:
        engine.write_report(result)
    return 0


async def cmd_stats(args, config: EngineConfig) -> int:
    store = SnapshotStore(config.storage.snapshots_path)
    repository = AlertRepository(config.storage.alerts_path)
    _print_json({
        "snapshots": await store.get_stats(args.symbol),
        "alerts": await repository.get_stats(),
    })
    return 0


async def cmd_settle(args, config: EngineConfig) -> int:
    repository = AlertRepository(config.storage.alerts_path)
    settled = await repository.settle(args.alert_id, TradeResult(args.result), args.pnl, args.price)
    return 0 if settled else 1


async def cmd_history(args, config: EngineConfig) -> int:
    repository = AlertRepository(config.storage.alerts_path)
    alerts = await repository.get_alerts_for_day(args.day, args.symbol)
    _print_json([alert.to_dict() for alert in alerts])
    return 0


COMMANDS = {
    "metrics": cmd_metrics,
    "signals": cmd_signals,
    "record": cmd_record,
    "backtest": cmd_backtest,
    "stats": cmd_stats,
    "settle": cmd_settle,
    "history": cmd_history,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gexsignal", description="GEX analytics and credit spread signals")
    parser.add_argument("--config", default=None, help="Path to engine_config.yaml")
    parser.add_argument("--log-level", default=None, help="Override log level (DEBUG, INFO, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    metrics = sub.add_parser("metrics", help="Compute GEX metrics from chain JSON files")
    metrics.add_argument("symbols", nargs="+")
    metrics.add_argument("--chains", required=True, help="Directory with <SYMBOL>.json chain files")
    metrics.add_argument("--now", default=None, help="Evaluation time (ISO-8601)")
    metrics.add_argument("--profile", action="store_true", help="Include the gamma profile")

    signals = sub.add_parser("signals", help="Run one signal cycle from chain JSON files")
    signals.add_argument("symbols", nargs="+")
    signals.add_argument("--chains", required=True)
    signals.add_argument("--now", default=None)
    signals.add_argument("--persist", action="store_true", help="Store alerts in the alert table")

    record = sub.add_parser("record", help="Record one snapshot per symbol")
    record.add_argument("symbols", nargs="+")
    record.add_argument("--chains", required=True)
    record.add_argument("--now", default=None)

    backtest = sub.add_parser("backtest", help="Replay recorded snapshots")
    backtest.add_argument("symbol")
    backtest.add_argument("--signals", action="store_true", help="Print every simulated trade")
    backtest.add_argument("--report", action="store_true", help="Write a JSON report")

    stats = sub.add_parser("stats", help="Snapshot and alert statistics")
    stats.add_argument("--symbol", default=None)

    settle = sub.add_parser("settle", help="Record an alert outcome")
    settle.add_argument("alert_id")
    settle.add_argument("result", choices=[r.value for r in TradeResult])
    settle.add_argument("--pnl", type=float, required=True)
    settle.add_argument("--price", type=float, required=True)

    history = sub.add_parser("history", help="Alerts generated on one day")
    history.add_argument("day", help="YYYY-MM-DD")
    history.add_argument("--symbol", default=None)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_engine_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.logging, level=args.log_level)

    try:
        return asyncio.run(COMMANDS[args.command](args, config))
    except GexSignalError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
