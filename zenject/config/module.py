"""
Config module - exposes configuration definitions as injectable values.
"""

from typing import Any, List, Optional, Sequence, Union
from pathlib import Path

from ..module import DynamicModule, module
from ..providers import FactoryProvider
from .definition import ConfigDefinition
from .environment import EnvironmentService
from .service import ConfigService
from .yaml_loader import YamlService


DEFAULT_CONFIG_PATH = "config/settings.yaml"


@module(
    providers=[YamlService, EnvironmentService, ConfigService],
    exports=[YamlService, EnvironmentService, ConfigService],
)
class ConfigModule:
    """
    Configuration module.

    Importing ``ConfigModule`` itself provides the config services;
    ``for_root`` / ``for_feature`` also provide one value per definition,
    keyed by ``definition.KEY``.

    Example:
        @module(imports=[ConfigModule.for_root([DatabaseConfig])])
        class AppModule:
            pass
    """

    @classmethod
    def for_root(
        cls,
        load: Sequence[ConfigDefinition] = (),
        *,
        file_path: Optional[Union[str, Path]] = None,
        env_prefix: str = "APP",
        enable_env_overrides: bool = True,
        env_file: Optional[Union[str, Path]] = None,
    ) -> DynamicModule:
        """
        Root configuration.

        Args:
            load: Definitions to load
            file_path: YAML file; defaults to config/settings.yaml, which may be absent
            env_prefix: Prefix for namespace overrides
            enable_env_overrides: Apply namespace overrides from the environment
            env_file: Optional .env file consulted for overrides
        """
        providers = cls._providers(
            load,
            file_path=file_path if file_path is not None else DEFAULT_CONFIG_PATH,
            require_file=file_path is not None,
            env_prefix=env_prefix,
            enable_env_overrides=enable_env_overrides,
            env_file=env_file,
        )
        return DynamicModule(
            module=cls,
            providers=providers,
            exports=providers,
            name=cls._name("for_root", load),
        )

    @classmethod
    def for_feature(
        cls,
        configs: Sequence[ConfigDefinition],
        *,
        file_path: Optional[Union[str, Path]] = None,
    ) -> DynamicModule:
        """Feature configuration with default loading options."""
        providers = cls._providers(
            configs,
            file_path=file_path if file_path is not None else DEFAULT_CONFIG_PATH,
            require_file=file_path is not None,
            env_prefix="APP",
            enable_env_overrides=True,
            env_file=None,
        )
        return DynamicModule(
            module=cls,
            providers=providers,
            exports=providers,
            name=cls._name("for_feature", configs),
        )

    @staticmethod
    def _providers(definitions: Sequence[ConfigDefinition], **options: Any) -> List[Any]:
        providers: List[Any] = [YamlService, EnvironmentService, ConfigService]
        providers.extend(config_provider(definition, **options) for definition in definitions)
        return providers

    @classmethod
    def _name(cls, kind: str, definitions: Sequence[ConfigDefinition]) -> str:
        namespaces = ",".join(definition.namespace for definition in definitions)
        return f"{cls.__name__}.{kind}[{namespaces}]"


def config_provider(definition: ConfigDefinition, **options: Any) -> FactoryProvider:
    """Factory provider loading one definition through ``ConfigService``."""

    async def load_config(config_service: ConfigService) -> Any:
        return await config_service.load_config(definition, **options)

    return FactoryProvider(definition.KEY, load_config, deps=(ConfigService,))
