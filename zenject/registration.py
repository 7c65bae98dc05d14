"""
Provider Registrar - turns provider descriptors into container registrations.

Registration is idempotent per token: re-declaring a token (for example via
overlapping module imports) is a silent no-op. Eager kinds (classes and
factories) are instantiated right away and their post-construct hook awaited.
"""

from typing import Any
import inspect
import logging

from .container import Container, Registration
from .errors import ProviderRegistrationError
from .hooks import call_on_init
from .providers import (
    ClassProvider,
    ExistingProvider,
    FactoryProvider,
    ValueProvider,
    as_provider,
    provider_token,
)
from .scopes import Scope
from .tokens import token_name


logger = logging.getLogger("zenject.registration")


class ProviderRegistrar:
    """
    Registers providers into one container.

    Example:
        registrar = ProviderRegistrar(container)
        await registrar.register_provider(UserService)
        await registrar.register_provider(ValueProvider("API_KEY", "k1"))
    """

    __slots__ = ("_container",)

    def __init__(self, container: Container):
        self._container = container

    @property
    def container(self) -> Container:
        return self._container

    async def register_provider(self, descriptor: Any) -> None:
        """
        Register one provider.

        Raises:
            ProviderRegistrationError: If the descriptor has no recognized shape
        """
        provider = as_provider(descriptor)
        token = provider_token(provider)

        if self._container.is_registered(token):
            logger.debug(f"Token {token_name(token)} already registered; skipping")
            return

        if isinstance(provider, type):
            await self._register_class(token, provider, singleton=True)
        elif isinstance(provider, ClassProvider):
            await self._register_class(token, provider.use_class, singleton=provider.singleton)
        elif isinstance(provider, ValueProvider):
            self._container.register(token, Registration.of_value(provider.use_value))
        elif isinstance(provider, FactoryProvider):
            await self._register_factory(token, provider)
        elif isinstance(provider, ExistingProvider):
            self._container.register(token, Registration.of_alias(provider.use_existing))
        else:
            raise ProviderRegistrationError(provider)

    async def _register_class(self, token: Any, cls: type, *, singleton: bool) -> None:
        scope = Scope.SINGLETON if singleton else Scope.TRANSIENT
        self._container.register(token, Registration.of_class(cls, scope))
        instance = self._container.resolve(token)
        await self.initialize(instance, token)

    async def _register_factory(self, token: Any, provider: FactoryProvider) -> None:
        # Dependencies are plain container lookups; only the factory may suspend
        deps = [self._container.resolve(dep) for dep in provider.deps]
        result = provider.use_factory(*deps)
        if inspect.isawaitable(result):
            result = await result

        self._container.register(token, Registration.of_value(result))
        await self.initialize(result, token)

    async def initialize(self, instance: Any, token: Any) -> None:
        """Run the post-construct hook; failures are logged, not raised."""
        try:
            if await call_on_init(instance):
                logger.debug(f"on_init completed for {token_name(token)}")
        except Exception:
            logger.exception(f"on_init failed for {token_name(token)}")
