"""
Logger module - provides a configured ``logging.Logger`` under ``LOGGER``.
"""

from typing import Any, Dict, List, MutableMapping, Optional, Tuple, Union
from datetime import datetime, timezone
from pathlib import Path
import json
import logging

from ..config import ConfigModule
from ..container import Inject
from ..module import DynamicModule, module
from ..providers import ExistingProvider, FactoryProvider, ValueProvider
from ..tokens import LOGGER
from .config import LOGGER_CONFIG, LoggerConfig, LoggerSettings, check_logger_settings


# Marks handlers attached by create_logger so reconfiguring replaces them
_HANDLER_ATTR = "_zenject_handler"


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that tags every record with a ``context`` attribute."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def context_logger(logger: logging.Logger, owner: type) -> ContextLogger:
    """Wrap a logger so its records carry the owner's class name as context."""
    if isinstance(logger, logging.LoggerAdapter):
        logger = logger.logger
    return ContextLogger(logger, {"context": owner.__name__})


def inject_logger() -> Inject:
    """
    Injection marker for a per-class logger.

    Example:
        class UserService:
            def __init__(self, logger: Annotated[logging.LoggerAdapter, inject_logger()]):
                self.logger = logger  # records tagged "[UserService]"
    """
    return Inject(LOGGER, bind=context_logger)


class ContextFormatter(logging.Formatter):
    """Text formatter exposing ``%(context_prefix)s`` as ``"[Context] "`` or ``""``."""

    def format(self, record: logging.LogRecord) -> str:
        context = getattr(record, "context", None)
        record.context_prefix = f"[{context}] " if context else ""
        return super().format(record)


class JsonLogFormatter(logging.Formatter):
    """JSON-structured log output."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def create_logger(settings: LoggerSettings) -> logging.Logger:
    """
    Configure and return the named logger.

    Handlers attached by earlier calls for the same name are replaced.
    """
    logger = logging.getLogger(settings.name)
    logger.setLevel(settings.level.upper())

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if settings.format == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(ContextFormatter(settings.message_format))
    setattr(handler, _HANDLER_ATTR, True)

    logger.addHandler(handler)
    logger.propagate = False
    return logger


@module()
class LoggerModule:
    """
    Logger module.

    Example:
        @module(imports=[LoggerModule.for_root(LoggerSettings(level="DEBUG"))])
        class AppModule:
            pass

        class AppService:
            def __init__(self, logger: Annotated[logging.Logger, Inject(LOGGER)]):
                self.logger = logger

    Use ``inject_logger()`` instead of ``Inject(LOGGER)`` for a logger whose
    records are tagged with the owning class name.
    """

    @classmethod
    def for_root(
        cls,
        settings: Optional[LoggerSettings] = None,
        *,
        file_path: Optional[Union[str, Path]] = None,
    ) -> DynamicModule:
        """
        Args:
            settings: Explicit settings; loaded from configuration when omitted
            file_path: YAML file with a ``logger`` section
        """
        imports: List[Any] = []

        if settings is not None:
            check_logger_settings(settings)
            config_provider: Any = ValueProvider(LOGGER_CONFIG, settings)
        else:
            imports.append(ConfigModule.for_feature([LoggerConfig], file_path=file_path))
            config_provider = ExistingProvider(LOGGER_CONFIG, LoggerConfig.KEY)

        providers = [
            config_provider,
            FactoryProvider(LOGGER, create_logger, deps=(LOGGER_CONFIG,)),
        ]

        return DynamicModule(
            module=cls,
            imports=imports,
            providers=providers,
            exports=[LOGGER_CONFIG, LOGGER],
            name=f"{cls.__name__}.for_root",
        )
