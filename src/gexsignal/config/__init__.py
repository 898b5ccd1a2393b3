"""Engine configuration."""

from gexsignal.config.engine_config import (
    BacktestSettings,
    EngineConfig,
    GEXSettings,
    LoggingSettings,
    QualityWeights,
    SignalSettings,
    StorageSettings,
    load_engine_config,
    merge_config_with_env,
)

__all__ = [
    "BacktestSettings",
    "EngineConfig",
    "GEXSettings",
    "LoggingSettings",
    "QualityWeights",
    "SignalSettings",
    "StorageSettings",
    "load_engine_config",
    "merge_config_with_env",
]
