"""
Configuration errors.
"""

from typing import Optional

from ..errors import ZenjectError


class ConfigError(ZenjectError):
    """Invalid configuration data."""
    pass


class ConfigLoadError(ConfigError):
    """Loading a configuration namespace failed."""

    def __init__(self, namespace: str, cause: Optional[BaseException] = None):
        self.namespace = namespace
        self.cause = cause

        msg = f"Failed to load configuration for namespace '{namespace}'"
        if cause is not None:
            msg += f": {cause}"

        super().__init__(msg)


class YamlImportError(ConfigError):
    """YAML file could not be read."""
    pass


class YamlParseError(ConfigError):
    """YAML content could not be parsed."""
    pass


class EnvironmentOverrideError(ConfigError):
    """Environment override mapping is malformed."""
    pass
