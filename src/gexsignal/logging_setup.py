"""
Logging setup.

Configures loguru sinks for the CLI and long-running services: a colored
stderr sink and an optional rotating file sink.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from gexsignal.config.engine_config import LoggingSettings

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{name}:{function}:{line} | {message}"
)


def setup_logging(settings: Optional[LoggingSettings] = None, level: Optional[str] = None) -> None:
    """
    Replace loguru's default sink with the engine's sinks.

    Args:
        settings: Logging settings (defaults used when None)
        level: Optional level override (e.g. from --verbose)
    """
    settings = settings or LoggingSettings()
    level = level or settings.level

    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            level=level,
            format=FILE_FORMAT,
            rotation=settings.rotation,
            retention=settings.retention,
            compression=settings.compression,
        )
