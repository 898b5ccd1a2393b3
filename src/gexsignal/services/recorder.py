"""
Chain Snapshot Recorder

Periodically fetches option chains and stores them in the snapshot store,
building the history the backtest engine replays.

Key patterns:
- Async loop with start()/stop() (cancel-safe)
- Contracts without activity (no volume and OI <= 100) are not stored
- One symbol's failure is logged and does not stop the others
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from gexsignal.config.engine_config import StorageSettings
from gexsignal.core.chain_parser import parse_chain
from gexsignal.core.models import OptionContract
from gexsignal.signals.providers import ChainProvider, fetch_with_aliases
from gexsignal.signals.trading_window import TradingWindow
from gexsignal.storage.snapshot_store import SnapshotStore


def is_active_contract(contract: OptionContract, min_open_interest: int = 100) -> bool:
    return contract.volume > 0 or contract.open_interest > min_open_interest


class DataRecorder:
    """
    Record chain snapshots for a list of symbols.

    Example:
        ```python
        recorder = DataRecorder(provider, SnapshotStore(), ["SPX"])
        await recorder.start(interval=300)
        ...
        await recorder.stop()
        ```
    """

    def __init__(
        self,
        provider: ChainProvider,
        store: SnapshotStore,
        symbols: list[str],
        settings: Optional[StorageSettings] = None,
        symbol_aliases: Optional[dict[str, list[str]]] = None,
        window: Optional[TradingWindow] = None,
    ):
        self.provider = provider
        self.store = store
        self.symbols = list(symbols)
        self.settings = settings or StorageSettings()
        self.symbol_aliases = symbol_aliases or {}
        self.window = window
        self._task: Optional[asyncio.Task] = None
        self._is_running = False

    async def record_symbol(self, symbol: str, now: Optional[datetime] = None) -> int:
        """Fetch and store one snapshot; returns rows written."""
        raw = await fetch_with_aliases(self.provider, symbol, self.symbol_aliases)
        chain = parse_chain(raw, symbol)
        if chain is None or chain.underlying_price <= 0:
            logger.warning(f"No usable chain to record for {symbol}")
            return 0

        contracts = [c for c in chain.contracts if is_active_contract(c, self.settings.min_open_interest)]
        snapshot_time = now or datetime.now(timezone.utc)
        return await self.store.write_snapshot(symbol, snapshot_time, chain.underlying_price, contracts)

    async def record_once(self, now: Optional[datetime] = None) -> dict[str, int]:
        """Record every symbol once; returns rows written per symbol."""
        if self.window is not None and not self.window.status(now).market_open:
            logger.debug("Market closed, skipping snapshot recording")
            return {}

        written = {}
        for symbol in self.symbols:
            try:
                written[symbol] = await self.record_symbol(symbol, now)
            except Exception as e:
                logger.error(f"Failed to record {symbol} snapshot: {e}")
                written[symbol] = 0
        return written

    async def start(self, interval: Optional[int] = None) -> None:
        """Start the periodic recording loop."""
        if self._is_running:
            return

        self._is_running = True
        seconds = interval or self.settings.record_interval_seconds
        self._task = asyncio.create_task(self._loop(seconds))
        logger.info(f"✓ Started snapshot recorder for {', '.join(self.symbols)} (interval: {seconds}s)")

    async def stop(self) -> None:
        """Stop the recording loop."""
        self._is_running = False

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("✓ Stopped snapshot recorder")

    async def _loop(self, interval: int) -> None:
        while self._is_running:
            try:
                await self.record_once()
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Snapshot recorder error: {e}")
                await asyncio.sleep(interval)
