"""
Logger configuration.
"""

from typing import Any
from dataclasses import dataclass
import logging

from ..config import ConfigError, create_config
from ..tokens import InjectionToken


LOG_FORMATS = ("text", "json")

DEFAULT_MESSAGE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(context_prefix)s%(message)s"


@dataclass
class LoggerSettings:
    """
    Attributes:
        name: Logger name
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: "text" or "json"
        message_format: ``logging`` format string for text output
    """

    name: str = "app"
    level: str = "INFO"
    format: str = "text"
    message_format: str = DEFAULT_MESSAGE_FORMAT


def check_logger_settings(settings: LoggerSettings) -> None:
    if not isinstance(logging.getLevelName(settings.level.upper()), int):
        raise ConfigError(f"Unknown log level '{settings.level}'")
    if settings.format not in LOG_FORMATS:
        raise ConfigError(
            f"Unknown log format '{settings.format}' (expected one of {', '.join(LOG_FORMATS)})"
        )


LoggerConfig = create_config(
    "logger",
    LoggerSettings,
    description="Configuration for the logging system",
    rules=check_logger_settings,
    env_overrides={
        "level": ["LOG_LEVEL", "LOGGER_LEVEL"],
        "format": "LOGGER_FORMAT",
        "message_format": "LOGGER_MESSAGE_FORMAT",
    },
)

LOGGER_CONFIG: InjectionToken[Any] = InjectionToken("LOGGER_CONFIG")
