"""GEX signal engine: gamma exposure analytics, credit spread signals and snapshot backtesting."""

__version__ = "0.1.0"
