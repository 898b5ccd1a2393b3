"""
Signal Scheduler

Runs a signal generation cycle for every configured symbol on a fixed
interval (default 5 minutes). The generator itself enforces the trading
window, so the loop can run all day.
"""

import asyncio
from datetime import datetime
from typing import Optional

from loguru import logger

from gexsignal.signals.generator import TradeSignalGenerator
from gexsignal.signals.models import TradeAlert


class SignalScheduler:
    """Periodic signal generation for a list of symbols."""

    def __init__(self, generator: TradeSignalGenerator, symbols: list[str], interval: int = 300):
        self.generator = generator
        self.symbols = list(symbols)
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._is_running = False

    async def run_once(self, now: Optional[datetime] = None) -> dict[str, list[TradeAlert]]:
        """One cycle over all symbols; a failing symbol yields no alerts."""
        results = {}
        for symbol in self.symbols:
            try:
                results[symbol] = await self.generator.generate_alerts(symbol, now)
            except Exception as e:
                logger.error(f"Signal generation failed for {symbol}: {e}")
                results[symbol] = []

        total = sum(len(alerts) for alerts in results.values())
        if total:
            logger.info(f"Signal cycle produced {total} alerts")
        return results

    async def start(self) -> None:
        if self._is_running:
            return

        self._is_running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"✓ Started signal scheduler for {', '.join(self.symbols)} (interval: {self.interval}s)")

    async def stop(self) -> None:
        self._is_running = False

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("✓ Stopped signal scheduler")

    async def _loop(self) -> None:
        while self._is_running:
            try:
                await self.run_once()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Signal scheduler error: {e}")
                await asyncio.sleep(self.interval)
