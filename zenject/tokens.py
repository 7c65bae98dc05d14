"""
Injection tokens.

A token identifies an injectable value inside a container. Classes and
strings work as tokens directly; ``InjectionToken`` covers everything else
(configuration objects, loggers, abstract concepts) with an identity-hashed
key that cannot collide with a string.
"""

from typing import Any, Generic, Type, TypeVar, Union

from .scopes import Scope


T = TypeVar("T")


class InjectionToken(Generic[T]):
    """
    Unique token for non-class dependencies.

    Two tokens with the same description are still different tokens.

    Example:
        API_URL = InjectionToken[str]("API_URL")
        container.register(API_URL, Registration.of_value("https://api.example.com"))
    """

    __slots__ = ("description", "scope")

    def __init__(self, description: str, scope: Scope = Scope.SINGLETON):
        if not description:
            raise ValueError("InjectionToken requires a description")
        self.description = description
        self.scope = Scope(scope)

    def __repr__(self) -> str:
        return f"InjectionToken[{self.description}]"

    __str__ = __repr__


Token = Union[Type[Any], str, InjectionToken]


def is_token(value: Any) -> bool:
    """Check whether a value can be used as a token."""
    if value is None:
        return False
    return isinstance(value, (str, type, InjectionToken))


def token_name(token: Any) -> str:
    """Human-readable token name for logs and error messages."""
    if isinstance(token, type):
        return f"{token.__module__}.{token.__qualname__}"
    return str(token)


# Common tokens

APP_NAME: InjectionToken[str] = InjectionToken("APP_NAME")
APP_VERSION: InjectionToken[str] = InjectionToken("APP_VERSION")
APP_ENV: InjectionToken[str] = InjectionToken("APP_ENV")
APP_CONFIG: InjectionToken[dict] = InjectionToken("APP_CONFIG")
LOGGER: InjectionToken[Any] = InjectionToken("LOGGER")
