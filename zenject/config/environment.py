"""
Environment Service - environment variable overrides with typed coercion.

Two override styles:

* namespace overrides: ``APP_DATABASE_HOST`` overrides ``database.host``,
  ``APP_DATABASE_POOL_SIZE`` overrides ``database.pool.size`` when ``pool``
  is a nested mapping. Only keys present in the config are considered.
* mapping overrides: ``{"level": "LOG_LEVEL", "db.url": ["DB_URL", "DATABASE_URL"]}``
  where the first variable set wins.

Values are coerced to the type of the value they replace.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from copy import deepcopy
from pathlib import Path
import os

from dotenv import dotenv_values

from .errors import EnvironmentOverrideError


EnvironmentMapping = Mapping[str, Union[str, Sequence[str]]]


class EnvironmentService:
    """
    Reads overrides from ``os.environ`` (or an explicit mapping).

    Example:
        env = EnvironmentService()
        port = env.get_typed_env_var("APP_PORT", 8000)
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return self._environ if self._environ is not None else os.environ

    def with_env_file(self, env_file: Union[str, Path]) -> "EnvironmentService":
        """
        Service that also sees variables from a .env file.

        The process environment wins over the file.
        """
        values = {
            key: value
            for key, value in dotenv_values(env_file).items()
            if value is not None
        }
        values.update(self.environ)
        return EnvironmentService(values)

    def apply_namespace_overrides(
        self,
        config: Mapping[str, Any],
        namespace: str,
        env_prefix: str = "APP",
    ) -> Dict[str, Any]:
        result = deepcopy(dict(config))
        section = result.get(namespace)

        if not isinstance(section, dict):
            return result

        result[namespace] = self._apply_overrides_to_object(
            section, f"{env_prefix}_{namespace.upper()}"
        )
        return result

    def apply_mapping_overrides(
        self,
        config: Mapping[str, Any],
        env_overrides: Optional[EnvironmentMapping],
    ) -> Dict[str, Any]:
        """
        Apply explicit config-key -> env-var mappings.

        Raises:
            EnvironmentOverrideError: If a dotted key is malformed
        """
        result = deepcopy(dict(config))
        if not env_overrides:
            return result

        for config_key, env_keys in env_overrides.items():
            keys = [env_keys] if isinstance(env_keys, str) else list(env_keys)
            env_value = self._first_available(keys)
            if env_value is None:
                continue

            if "." in config_key:
                if ".." in config_key or config_key.startswith(".") or config_key.endswith("."):
                    raise EnvironmentOverrideError(
                        f"Invalid path: '{config_key}' contains invalid dot notation"
                    )
                self._set_nested(result, config_key, env_value)
            else:
                result[config_key] = self.convert_value(env_value, result.get(config_key))

        return result

    def get_typed_env_var(self, env_key: str, default: Any) -> Any:
        value = self.environ.get(env_key)
        if value is None:
            return default
        return self.convert_value(value, default)

    def has_env_var(self, env_key: str) -> bool:
        return env_key in self.environ

    def get_env_vars_with_prefix(self, prefix: str) -> Dict[str, str]:
        upper = prefix.upper()
        return {key: value for key, value in self.environ.items() if key.startswith(upper)}

    def convert_value(self, env_value: str, original: Any) -> Any:
        """Coerce an env string to the type of the value it replaces."""
        # bool first: bool is an int subclass
        if isinstance(original, bool):
            return env_value.strip().lower() in ("true", "1", "yes")

        if isinstance(original, int):
            try:
                return int(env_value)
            except ValueError:
                try:
                    return float(env_value)
                except ValueError:
                    return original

        if isinstance(original, float):
            try:
                return float(env_value)
            except ValueError:
                return original

        if isinstance(original, (list, tuple)):
            return [item.strip() for item in env_value.split(",") if item.strip()]

        return env_value

    # ── internals ──

    def _apply_overrides_to_object(self, obj: Dict[str, Any], prefix: str) -> Dict[str, Any]:
        result = dict(obj)

        for key, value in obj.items():
            env_key = f"{prefix}_{key.upper()}"
            env_value = self.environ.get(env_key)

            if env_value is not None:
                result[key] = self.convert_value(env_value, value)
            elif isinstance(value, dict):
                result[key] = self._apply_overrides_to_object(value, env_key)

        return result

    def _set_nested(self, obj: Dict[str, Any], path: str, env_value: str) -> None:
        keys = path.split(".")
        current = obj

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = self.convert_value(env_value, current.get(keys[-1]))

    def _first_available(self, env_keys: List[str]) -> Optional[str]:
        for key in env_keys:
            value = self.environ.get(key)
            if value is not None:
                return value
        return None
