"""
Configuration definitions.

``create_config`` binds a namespace to a dataclass schema and yields a
``ConfigDefinition`` whose ``KEY`` is the injection token of the loaded
configuration object.

Example:
    @dataclass
    class DatabaseSettings:
        host: str = "localhost"
        port: int = 5432

    DatabaseConfig = create_config(
        "database",
        DatabaseSettings,
        env_overrides={"host": "DB_HOST"},
    )

    class Repo:
        def __init__(self, db: Annotated[DatabaseSettings, Inject(DatabaseConfig.KEY)]):
            ...
"""

from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Literal,
    Mapping,
    Optional,
    Type,
    TypeVar,
    get_args,
    get_origin,
    get_type_hints,
)
from dataclasses import MISSING, asdict, fields, is_dataclass
import types

from ..tokens import InjectionToken
from .environment import EnvironmentMapping, EnvironmentService
from .errors import ConfigError


T = TypeVar("T")


class ConfigDefinition(Generic[T]):
    """Namespace + schema + validation pipeline for one config section."""

    def __init__(
        self,
        namespace: str,
        schema: Type[T],
        *,
        description: Optional[str] = None,
        rules: Optional[Callable[[T], None]] = None,
        transform: Optional[Callable[[T], Any]] = None,
        env_overrides: Optional[EnvironmentMapping] = None,
    ):
        if not is_dataclass(schema) or not isinstance(schema, type):
            raise ConfigError(f"Config schema for '{namespace}' must be a dataclass, got {schema!r}")

        self.namespace = namespace
        self.schema = schema
        self.description = description or f"Configuration for {namespace}"
        self.rules = rules
        self.transform = transform
        self.env_overrides = dict(env_overrides) if env_overrides else None
        self.KEY: InjectionToken[Any] = InjectionToken(f"Config[{namespace}]")

    def __repr__(self) -> str:
        return f"ConfigDefinition({self.namespace!r}, {self.schema.__name__})"

    def get_defaults(self) -> Dict[str, Any]:
        """Field defaults of the schema; required fields are left out."""
        defaults: Dict[str, Any] = {}
        for field_info in fields(self.schema):
            if field_info.default is not MISSING:
                defaults[field_info.name] = field_info.default
            elif field_info.default_factory is not MISSING:
                defaults[field_info.name] = field_info.default_factory()

            value = defaults.get(field_info.name)
            if is_dataclass(value) and not isinstance(value, type):
                defaults[field_info.name] = asdict(value)
        return defaults

    def get_example(self) -> Dict[str, Any]:
        return self.get_defaults()

    def validate(self, data: Any, environment: Optional[EnvironmentService] = None) -> Any:
        """
        Validate raw data against the schema.

        Mapping overrides are applied, then the schema is instantiated,
        business rules run, and the transform (if any) shapes the result.

        Raises:
            ConfigError: If a field is missing or has the wrong type
        """
        if isinstance(data, self.schema):
            data = asdict(data)
        if not isinstance(data, Mapping):
            raise ConfigError(
                f"Config '{self.namespace}' expected a mapping, got {type(data).__name__}"
            )

        if self.env_overrides:
            data = (environment or EnvironmentService()).apply_mapping_overrides(
                data, self.env_overrides
            )

        instance = instantiate_dataclass(self.schema, data)

        if self.rules is not None:
            self.rules(instance)

        if self.transform is not None:
            return self.transform(instance)
        return instance


def create_config(
    namespace: str,
    schema: Type[T],
    *,
    description: Optional[str] = None,
    rules: Optional[Callable[[T], None]] = None,
    transform: Optional[Callable[[T], Any]] = None,
    env_overrides: Optional[EnvironmentMapping] = None,
) -> ConfigDefinition[T]:
    """Create a configuration definition for a namespace."""
    return ConfigDefinition(
        namespace,
        schema,
        description=description,
        rules=rules,
        transform=transform,
        env_overrides=env_overrides,
    )


def instantiate_dataclass(config_class: Type[T], data: Mapping[str, Any]) -> T:
    """Instantiate dataclass config with validation."""
    kwargs = {}
    hints = get_type_hints(config_class)

    for field_info in fields(config_class):
        field_name = field_info.name
        field_type = hints.get(field_name, field_info.type)

        if field_name in data:
            value = data[field_name]

            # Nested sections
            if is_dataclass(field_type) and isinstance(value, Mapping):
                value = instantiate_dataclass(field_type, value)

            if not check_type(value, field_type):
                raise ConfigError(
                    f"Config field '{field_name}' expected {getattr(field_type, '__name__', field_type)}, "
                    f"got {type(value).__name__}"
                )

            kwargs[field_name] = value
        elif field_info.default is not MISSING:
            kwargs[field_name] = field_info.default
        elif field_info.default_factory is not MISSING:
            kwargs[field_name] = field_info.default_factory()
        else:
            raise ConfigError(f"Required config field '{field_name}' not provided")

    return config_class(**kwargs)


def check_type(value: Any, expected_type: Any) -> bool:
    """Basic type checking."""
    origin = get_origin(expected_type)

    # Optional[X] / X | None
    if origin is types.UnionType or str(origin) == "typing.Union":
        if value is None:
            return True
        return any(check_type(value, arg) for arg in get_args(expected_type) if arg is not type(None))

    # Generic types
    if origin:
        if origin is Literal:
            return value in get_args(expected_type)
        return isinstance(value, origin)

    if expected_type is Any:
        return True

    if expected_type is float and isinstance(value, int) and not isinstance(value, bool):
        return True

    try:
        return isinstance(value, expected_type)
    except TypeError:
        # Complex types are not validated
        return True
