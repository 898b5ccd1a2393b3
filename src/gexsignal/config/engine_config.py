"""
Engine Configuration Loader

Loads and validates engine configuration from a YAML file, with
environment variable overrides.

Config location: config/engine_config.yaml

Schema:
- gex: Gamma exposure calculation constants
- signals: Credit spread construction thresholds and trading window
- quality: Quality factor weights
- storage: Delta Lake table locations
- backtest: Backtest replay settings
- logging: loguru sink settings
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger

from gexsignal.exceptions import ConfigurationError


@dataclass
class GEXSettings:
    """Gamma exposure calculation constants."""
    contract_multiplier: int = 100
    flip_proximity_pct: float = 0.005      # Within 0.5% of flip -> volatile
    risk_free_rate: float = 0.04
    same_day_hours: float = 6.5            # One trading session
    default_iv: float = 20.0               # Percent, used when IV is missing
    profile_range_pct: float = 0.08
    profile_steps: int = 60
    profile_max_flip_distance_pct: float = 0.20
    atm_tolerance: float = 1.0
    solid_wall_oi: int = 5000
    weak_wall_oi: int = 1000


@dataclass
class SignalSettings:
    """Credit spread construction thresholds and trading window."""
    spread_width: float = 5.0
    min_credit: float = 0.20
    min_short_delta: float = 0.15
    max_short_delta: float = 0.25
    wall_buffer: float = 20.0
    strike_tolerance: float = 1.0
    drift_threshold: float = 0.5
    vanna_bullish_threshold: float = 15_000_000
    vanna_bearish_threshold: float = -10_000_000
    alert_validity_hours: float = 2.0
    closing_buffer_minutes: int = 15
    timezone: str = "America/New_York"
    symbols: List[str] = field(default_factory=lambda: ["SPX"])
    symbol_aliases: Dict[str, List[str]] = field(
        default_factory=lambda: {"SPX": ["$SPX", "SPX", "SPXW"]}
    )
    scan_interval_seconds: int = 300       # 5 minutes


@dataclass
class QualityWeights:
    """Weights of the six quality factors (must sum to 1.0)."""
    move_exhaustion: float = 0.25
    expected_move_usage: float = 0.20
    wall_proximity: float = 0.20
    time_remaining: float = 0.15
    regime_strength: float = 0.10
    drift_alignment: float = 0.10

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class StorageSettings:
    """Delta Lake table locations."""
    snapshots_path: str = "data/lake/option_snapshots"
    alerts_path: str = "data/lake/trade_alerts"
    min_open_interest: int = 100           # Recorder keeps volume > 0 or OI > this
    record_interval_seconds: int = 300


@dataclass
class BacktestSettings:
    """Backtest replay settings."""
    reports_dir: str = "data/backtests"
    dedupe_alert_ids: bool = False         # True counts a re-generated alert id once


@dataclass
class LoggingSettings:
    """loguru sink settings."""
    level: str = "INFO"
    log_file: Optional[str] = "logs/gexsignal.log"
    rotation: str = "10 MB"
    retention: str = "7 days"
    compression: str = "zip"


@dataclass
class EngineConfig:
    """Complete engine configuration."""

    gex: GEXSettings = field(default_factory=GEXSettings)
    signals: SignalSettings = field(default_factory=SignalSettings)
    quality: QualityWeights = field(default_factory=QualityWeights)
    storage: StorageSettings = field(default_factory=StorageSettings)
    backtest: BacktestSettings = field(default_factory=BacktestSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_dict(cls, data: dict) -> "EngineConfig":
        """Create config from dictionary with nested dataclass instantiation.

        Unknown keys inside a section are ignored with a warning.
        """
        return cls(
            gex=_build_section(GEXSettings, data.get("gex") or {}),
            signals=_build_section(SignalSettings, data.get("signals") or {}),
            quality=_build_section(QualityWeights, data.get("quality") or {}),
            storage=_build_section(StorageSettings, data.get("storage") or {}),
            backtest=_build_section(BacktestSettings, data.get("backtest") or {}),
            logging=_build_section(LoggingSettings, data.get("logging") or {}),
        )

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        # GEX constants
        if self.gex.contract_multiplier <= 0:
            errors.append(f"Invalid contract_multiplier: {self.gex.contract_multiplier}")
        if not (0 < self.gex.flip_proximity_pct < 1):
            errors.append(f"flip_proximity_pct must be between 0 and 1: {self.gex.flip_proximity_pct}")
        if self.gex.profile_steps < 2:
            errors.append(f"profile_steps must be >= 2: {self.gex.profile_steps}")
        if not (0 < self.gex.profile_range_pct < 1):
            errors.append(f"profile_range_pct must be between 0 and 1: {self.gex.profile_range_pct}")
        if self.gex.default_iv <= 0:
            errors.append(f"default_iv must be positive: {self.gex.default_iv}")

        # Spread construction
        if self.signals.spread_width <= 0:
            errors.append(f"spread_width must be positive: {self.signals.spread_width}")
        if self.signals.min_credit < 0:
            errors.append(f"min_credit must be >= 0: {self.signals.min_credit}")
        if not (0 <= self.signals.min_short_delta <= self.signals.max_short_delta <= 1):
            errors.append(
                f"Invalid short delta range: [{self.signals.min_short_delta}, {self.signals.max_short_delta}]"
            )
        if self.signals.scan_interval_seconds < 10:
            errors.append("scan_interval_seconds must be >= 10 seconds")
        if self.storage.record_interval_seconds < 10:
            errors.append("record_interval_seconds must be >= 10 seconds")

        # Quality weights
        total_weight = sum(self.quality.as_dict().values())
        if abs(total_weight - 1.0) > 1e-6:
            errors.append(f"Quality weights must sum to 1.0: {total_weight:.4f}")

        return errors


def _build_section(section_cls, values: Dict[str, Any]):
    known = {f.name for f in fields(section_cls)}
    unknown = set(values) - known
    if unknown:
        logger.warning(f"Ignoring unknown {section_cls.__name__} keys: {sorted(unknown)}")
    return section_cls(**{k: v for k, v in values.items() if k in known})


# Environment overrides: variable -> (section, key, type)
ENV_MAPPING = {
    "GEXSIGNAL_SNAPSHOTS_PATH": ("storage", "snapshots_path", str),
    "GEXSIGNAL_ALERTS_PATH": ("storage", "alerts_path", str),
    "GEXSIGNAL_LOG_LEVEL": ("logging", "level", str),
    "GEXSIGNAL_LOG_FILE": ("logging", "log_file", str),
    "GEXSIGNAL_SPREAD_WIDTH": ("signals", "spread_width", float),
    "GEXSIGNAL_MIN_CREDIT": ("signals", "min_credit", float),
    "GEXSIGNAL_SCAN_INTERVAL": ("signals", "scan_interval_seconds", int),
    "GEXSIGNAL_SYMBOLS": ("signals", "symbols", list),
    "GEXSIGNAL_RISK_FREE_RATE": ("gex", "risk_free_rate", float),
}


def merge_config_with_env(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge configuration with environment variables.

    Environment variables override config file settings.

    Examples:
        GEXSIGNAL_ALERTS_PATH=/mnt/lake/trade_alerts
        GEXSIGNAL_SYMBOLS=SPX,SPY
        GEXSIGNAL_LOG_LEVEL=DEBUG

    Args:
        config_data: Configuration data from file

    Returns:
        Merged configuration with env vars applied
    """
    for env_var, (section, key, kind) in ENV_MAPPING.items():
        env_value = os.environ.get(env_var)
        if env_value is None:
            continue

        if kind is list:
            value = [item.strip() for item in env_value.split(",") if item.strip()]
        else:
            try:
                value = kind(env_value)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_var}: {env_value!r}") from e

        config_data.setdefault(section, {})[key] = value
        logger.debug(f"Overriding {section}.{key} from env: {env_var}")

    return config_data


def load_engine_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load engine configuration from YAML file.

    Args:
        config_path: Path to config file (default: config/engine_config.yaml)

    Returns:
        EngineConfig object

    Raises:
        ConfigurationError: If configuration is invalid
    """
    if config_path is None:
        config_path = Path("config") / "engine_config.yaml"

    config_file = Path(config_path)

    data: Dict[str, Any] = {}
    if not config_file.exists():
        logger.warning(f"Engine config file not found: {config_file}, using defaults")
    else:
        try:
            with open(config_file, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse config file {config_file}: {e}") from e

        if not data:
            logger.warning(f"Empty config file: {config_file}, using defaults")
        elif not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_file} must contain a mapping")

    data = merge_config_with_env(data)

    try:
        config = EngineConfig.from_dict(data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration structure: {e}") from e

    errors = config.validate()
    if errors:
        error_msg = "Configuration validation errors:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    logger.info(f"✓ Loaded engine config ({config_file})")
    return config
