"""
Logger module.
"""

from ..tokens import LOGGER
from .config import LOGGER_CONFIG, LoggerConfig, LoggerSettings
from .module import (
    ContextFormatter,
    ContextLogger,
    JsonLogFormatter,
    LoggerModule,
    context_logger,
    create_logger,
    inject_logger,
)


__all__ = [
    "LOGGER",
    "LOGGER_CONFIG",
    "LoggerConfig",
    "LoggerSettings",
    "LoggerModule",
    "JsonLogFormatter",
    "ContextFormatter",
    "ContextLogger",
    "context_logger",
    "create_logger",
    "inject_logger",
]
