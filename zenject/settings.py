"""
Runtime settings - process-level switches read from the environment.

Values come from ``os.environ`` and, optionally, a ``.env`` file (the process
environment wins). Example::

    ZENJECT_ENV=production
    ZENJECT_EXIT_ON_SHUTDOWN=false
    ZENJECT_HANDLE_SIGNALS=true
"""

from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, field
from pathlib import Path
import json
import os

from dotenv import dotenv_values


@dataclass
class RuntimeSettings:
    """
    Settings controlling process integration of the runtime.

    Attributes:
        env: Environment name ("development", "production", "test", ...)
        exit_on_shutdown: Exit the process once shutdown completes
        handle_signals: Install SIGINT/SIGTERM and fault handlers
    """

    env: str = "development"
    exit_on_shutdown: Optional[bool] = None
    handle_signals: Optional[bool] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Process switches follow the test-harness check unless set explicitly
        if self.exit_on_shutdown is None:
            self.exit_on_shutdown = not self.testing
        if self.handle_signals is None:
            self.handle_signals = not self.testing

    @property
    def testing(self) -> bool:
        """True under a test harness."""
        return self.env == "test" or "PYTEST_CURRENT_TEST" in os.environ

    @classmethod
    def from_env(
        cls,
        prefix: str = "ZENJECT_",
        env_file: Optional[Union[str, Path]] = None,
    ) -> "RuntimeSettings":
        """
        Load settings from environment variables.

        Args:
            prefix: Variable prefix
            env_file: Optional .env file read before the process environment

        Returns:
            RuntimeSettings
        """
        values: Dict[str, Any] = {}

        if env_file is not None and Path(env_file).exists():
            for key, value in dotenv_values(env_file).items():
                if key.startswith(prefix) and value is not None:
                    values[key[len(prefix):].lower()] = value

        for key, value in os.environ.items():
            if key.startswith(prefix):
                values[key[len(prefix):].lower()] = value

        env = str(values.pop("env", "development"))
        exit_on_shutdown = values.pop("exit_on_shutdown", None)
        handle_signals = values.pop("handle_signals", None)

        return cls(
            env=env,
            exit_on_shutdown=None if exit_on_shutdown is None else _parse_bool(exit_on_shutdown),
            handle_signals=None if handle_signals is None else _parse_bool(handle_signals),
            extra={key: parse_value(value) for key, value in values.items()},
        )


def parse_value(value: str) -> Any:
    """Parse string value to appropriate type."""
    # Boolean
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False

    # Number
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        pass

    # JSON
    if value.startswith(("{", "[")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass

    return value


def _parse_bool(value: str) -> bool:
    return str(value).strip().lower() in ("true", "yes", "1", "on")
