"""
Provider descriptors - the five ways to satisfy a token.

Descriptors are plain data; ``ProviderRegistrar`` turns them into container
registrations. The set of kinds is closed: a class (constructor provider),
``ClassProvider``, ``ValueProvider``, ``FactoryProvider`` and
``ExistingProvider``.
"""

from typing import Any, Callable, Mapping, Tuple, Union
from dataclasses import dataclass, field

from .errors import ProviderRegistrationError
from .tokens import is_token


@dataclass(frozen=True)
class ClassProvider:
    """Maps a token to a concrete class."""

    provide: Any
    use_class: type
    singleton: bool = True

    def __post_init__(self):
        if not isinstance(self.use_class, type):
            raise ProviderRegistrationError(self, reason="use_class must be a class")


@dataclass(frozen=True, eq=False)
class ValueProvider:
    """Maps a token to a pre-built value."""

    provide: Any
    use_value: Any


@dataclass(frozen=True)
class FactoryProvider:
    """
    Maps a token to the result of a factory called once at registration.

    The factory receives the resolved ``deps`` positionally and may be sync
    or async.
    """

    provide: Any
    use_factory: Callable[..., Any]
    deps: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not callable(self.use_factory):
            raise ProviderRegistrationError(self, reason="use_factory must be callable")
        object.__setattr__(self, "deps", tuple(self.deps))


@dataclass(frozen=True)
class ExistingProvider:
    """Maps a token to another, already registered token."""

    provide: Any
    use_existing: Any


Provider = Union[type, ClassProvider, ValueProvider, FactoryProvider, ExistingProvider]

PROVIDER_KINDS = (ClassProvider, ValueProvider, FactoryProvider, ExistingProvider)

_TAGS = {
    "use_class": ClassProvider,
    "use_value": ValueProvider,
    "use_factory": FactoryProvider,
    "use_existing": ExistingProvider,
}


def as_provider(descriptor: Any) -> Provider:
    """
    Normalize a descriptor into one of the five provider kinds.

    Mappings are accepted when they carry ``provide`` and exactly one
    ``use_*`` key:

        {"provide": "API_KEY", "use_value": "k1"}
        {"provide": Db, "use_factory": connect, "deps": [DB_URL]}

    Raises:
        ProviderRegistrationError: If the descriptor has no recognized shape
    """
    if isinstance(descriptor, type) or isinstance(descriptor, PROVIDER_KINDS):
        return descriptor

    if isinstance(descriptor, Mapping):
        return _from_mapping(descriptor)

    raise ProviderRegistrationError(descriptor)


def provider_token(provider: Provider) -> Any:
    """Token a provider registers under."""
    if isinstance(provider, type):
        return provider
    return provider.provide


def is_provider(value: Any) -> bool:
    """Check whether a value is an already-normalized provider."""
    return isinstance(value, type) or isinstance(value, PROVIDER_KINDS)


def _from_mapping(descriptor: Mapping) -> Provider:
    tags = [key for key in _TAGS if key in descriptor]

    if "provide" not in descriptor:
        raise ProviderRegistrationError(dict(descriptor), reason="missing 'provide'")
    if len(tags) != 1:
        raise ProviderRegistrationError(
            dict(descriptor),
            reason=f"expected exactly one of {', '.join(_TAGS)}, found {len(tags)}",
        )

    token = descriptor["provide"]
    if not is_token(token):
        raise ProviderRegistrationError(dict(descriptor), reason="'provide' is not a token")

    tag = tags[0]
    extra = set(descriptor) - {"provide", tag, "singleton", "deps"}
    if extra:
        raise ProviderRegistrationError(
            dict(descriptor), reason=f"unknown keys: {', '.join(sorted(map(str, extra)))}"
        )

    if tag == "use_class":
        return ClassProvider(token, descriptor[tag], singleton=descriptor.get("singleton", True))
    if tag == "use_factory":
        return FactoryProvider(token, descriptor[tag], deps=tuple(descriptor.get("deps", ())))
    if tag == "use_value":
        return ValueProvider(token, descriptor[tag])
    return ExistingProvider(token, descriptor[tag])
