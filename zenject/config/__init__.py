"""
Configuration module - YAML files, environment overrides and dataclass schemas.
"""

from .definition import ConfigDefinition, check_type, create_config, instantiate_dataclass
from .environment import EnvironmentMapping, EnvironmentService
from .errors import (
    ConfigError,
    ConfigLoadError,
    EnvironmentOverrideError,
    YamlImportError,
    YamlParseError,
)
from .module import DEFAULT_CONFIG_PATH, ConfigModule, config_provider
from .service import ConfigService, deep_merge
from .yaml_loader import YamlService


__all__ = [
    "ConfigDefinition",
    "create_config",
    "instantiate_dataclass",
    "check_type",
    "EnvironmentService",
    "EnvironmentMapping",
    "ConfigService",
    "deep_merge",
    "YamlService",
    "ConfigModule",
    "config_provider",
    "DEFAULT_CONFIG_PATH",
    "ConfigError",
    "ConfigLoadError",
    "EnvironmentOverrideError",
    "YamlImportError",
    "YamlParseError",
]
