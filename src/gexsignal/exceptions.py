"""
Exception types for the GEX signal engine.

Analytics code never raises for missing market data (it returns safe
defaults instead); these exceptions mark the few places where a caller
must react: unparseable payloads, empty backtests and bad configuration.
"""


class GexSignalError(Exception):
    """Base class for all engine errors."""
    pass


class ChainParseError(GexSignalError):
    """Raised when a raw option chain payload has an unrecognisable shape."""
    pass


class NoSnapshotDataError(GexSignalError):
    """Raised when a backtest is requested for a symbol with no recorded snapshots."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"No snapshot data found for {symbol}")


class ConfigurationError(GexSignalError):
    """Raised when engine configuration fails validation."""
    pass
