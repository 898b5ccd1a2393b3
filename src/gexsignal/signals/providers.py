"""
Option Chain Providers

The signal generator and data recorder fetch chains through the
ChainProvider protocol, so the quote transport (broker API, cache, files)
is injected rather than imported.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, Union

from loguru import logger

from gexsignal.core.models import OptionsChain

ChainData = Union[Mapping[str, Any], OptionsChain]


class ChainProvider(Protocol):
    """Source of option chain snapshots."""

    async def get_options_chain(self, symbol: str) -> Optional[ChainData]:
        """Return the current chain (raw payload or OptionsChain), or None if unavailable."""
        ...


class StaticChainProvider:
    """In-memory provider serving fixed payloads per symbol."""

    def __init__(self, chains: Optional[dict[str, ChainData]] = None):
        self.chains: dict[str, ChainData] = dict(chains or {})
        self.requests: list[str] = []

    def set_chain(self, symbol: str, chain: Optional[ChainData]) -> None:
        if chain is None:
            self.chains.pop(symbol, None)
        else:
            self.chains[symbol] = chain

    async def get_options_chain(self, symbol: str) -> Optional[ChainData]:
        self.requests.append(symbol)
        return self.chains.get(symbol)


class JsonFileChainProvider:
    """
    Provider reading ``<directory>/<SYMBOL>.json`` payloads.

    Leading '$' is stripped from symbols for the file name ('$SPX' -> SPX.json).
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, symbol: str) -> Path:
        return self.directory / f"{symbol.lstrip('$').upper()}.json"

    async def get_options_chain(self, symbol: str) -> Optional[ChainData]:
        path = self.path_for(symbol)
        if not path.exists():
            logger.debug(f"No chain file for {symbol}: {path}")
            return None
        return await asyncio.to_thread(self._load, path)

    @staticmethod
    def _load(path: Path) -> Optional[ChainData]:
        try:
            with open(path, "r") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid chain JSON in {path}: {e}")
            return None


async def fetch_with_aliases(
    provider: ChainProvider,
    symbol: str,
    aliases: Optional[Mapping[str, list[str]]] = None,
) -> Optional[ChainData]:
    """
    Fetch a chain, trying the symbol's aliases in order (e.g. SPX -> $SPX, SPX, SPXW).

    The first non-empty payload wins.
    """
    candidates = list((aliases or {}).get(symbol, [])) or [symbol]
    if symbol not in candidates:
        candidates.append(symbol)

    for candidate in candidates:
        chain = await provider.get_options_chain(candidate)
        if chain:
            if candidate != symbol:
                logger.debug(f"Resolved {symbol} chain via {candidate}")
            return chain

    return None
