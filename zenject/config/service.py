"""
Config Service - merges defaults, YAML and environment into a validated object.

Precedence (lowest to highest):

    schema defaults <- YAML namespace section <- environment (.env file, then process)
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from pathlib import Path
import asyncio
import logging

from .definition import ConfigDefinition
from .environment import EnvironmentService
from .errors import ConfigLoadError, YamlImportError
from .yaml_loader import YamlService


logger = logging.getLogger("zenject.config")


class ConfigService:
    """
    Loads configuration definitions.

    Example:
        service = ConfigService(YamlService(), EnvironmentService())
        db = await service.load_config(DatabaseConfig, file_path="config/settings.yaml")
    """

    def __init__(self, yaml_service: YamlService, environment_service: EnvironmentService):
        self.yaml_service = yaml_service
        self.environment_service = environment_service

    async def load_config(
        self,
        definition: ConfigDefinition,
        *,
        file_path: Optional[Union[str, Path]] = None,
        enable_env_overrides: bool = True,
        env_prefix: str = "APP",
        env_file: Optional[Union[str, Path]] = None,
        require_file: bool = True,
    ) -> Any:
        """
        Load, merge and validate one configuration namespace.

        Args:
            definition: Definition created by ``create_config``
            file_path: YAML file holding a section per namespace
            enable_env_overrides: Apply ``<PREFIX>_<NAMESPACE>_<KEY>`` overrides
            env_prefix: Prefix for namespace overrides
            env_file: Optional .env file consulted for overrides
            require_file: Fail when ``file_path`` does not exist

        Raises:
            ConfigLoadError: Wrapping any failure
        """
        namespace = definition.namespace

        try:
            data: Dict[str, Any] = definition.get_defaults()

            if file_path is not None and str(file_path).strip():
                if require_file or Path(file_path).exists():
                    document = await self.yaml_service.import_file(file_path)
                    section = document.get(namespace)
                    if isinstance(section, Mapping):
                        data = deep_merge(data, section)
                else:
                    logger.debug(f"Config file {file_path} not found; using defaults for '{namespace}'")

            environment = self.environment_service
            if env_file is not None:
                environment = environment.with_env_file(env_file)

            if enable_env_overrides:
                data = environment.apply_namespace_overrides(
                    {namespace: data}, namespace, env_prefix
                )[namespace]

            config = definition.validate(data, environment=environment)
        except ConfigLoadError:
            raise
        except Exception as e:
            raise ConfigLoadError(namespace, e) from e

        logger.debug(f"Loaded configuration '{namespace}'")
        return config

    async def load_multiple_configs(
        self,
        definitions: Sequence[ConfigDefinition],
        **options: Any,
    ) -> List[Any]:
        return list(
            await asyncio.gather(
                *(self.load_config(definition, **options) for definition in definitions)
            )
        )

    async def config_exists(self, file_path: Union[str, Path]) -> bool:
        """Check whether a YAML file exists and parses."""
        try:
            await self.yaml_service.import_file(file_path)
        except YamlImportError:
            return False
        return True


def deep_merge(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep merge overrides into a copy of defaults."""
    result = dict(defaults)
    for key, value in overrides.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result
