"""
Testing utilities.
"""

from typing import Any, Iterable, Mapping, Optional, Sequence, Union
from contextlib import asynccontextmanager
from dataclasses import dataclass

from .app import Zenject
from .container import Container, Registration
from .providers import (
    ClassProvider,
    ExistingProvider,
    FactoryProvider,
    ValueProvider,
    as_provider,
    provider_token,
)
from .registration import ProviderRegistrar
from .scopes import Scope
from .settings import RuntimeSettings


Overrides = Union[Mapping[Any, Any], Iterable[Any]]


def isolated_settings() -> RuntimeSettings:
    """Settings that never exit the process nor touch signal handlers."""
    return RuntimeSettings(env="test", exit_on_shutdown=False, handle_signals=False)


def create_testing_container(
    overrides: Optional[Overrides] = None,
    *,
    parent: Optional[Container] = None,
) -> Container:
    """
    Create a fresh container with values pre-registered.

    Example:
        container = create_testing_container({UserRepo: FakeRepo(), "API_KEY": "test"})
        service = container.resolve(UserService)
    """
    container = parent.create_child_container() if parent is not None else Container()
    for token, value in _override_items(overrides):
        container.register(token, Registration.of_value(value))
    return container


@dataclass
class TestContext:
    """Container (and, when modules were imported, application) under test."""

    __test__ = False

    container: Container
    app: Optional[Zenject] = None

    def resolve(self, token: Any) -> Any:
        return self.container.resolve(token)


async def create_test_context(
    imports: Sequence[Any] = (),
    providers: Sequence[Any] = (),
    overrides: Optional[Overrides] = None,
) -> TestContext:
    """
    Build a test context.

    Overrides are registered first, so they win over any provider for the
    same token declared by ``providers`` or by imported modules.

    Example:
        ctx = await create_test_context(
            providers=[AppService],
            overrides={LOGGER: MagicMock()},
        )
        service = ctx.resolve(AppService)
    """
    container = create_testing_container(overrides)
    registrar = ProviderRegistrar(container)

    for descriptor in providers:
        provider = as_provider(descriptor)
        token = provider_token(provider)
        if container.is_registered(token):
            continue

        # Classes stay lazy so providers may be listed in any order
        if isinstance(provider, type):
            container.register_singleton(provider)
        elif isinstance(provider, ClassProvider):
            scope = Scope.SINGLETON if provider.singleton else Scope.TRANSIENT
            container.register(token, Registration.of_class(provider.use_class, scope))
        elif isinstance(provider, ValueProvider):
            container.register(token, Registration.of_value(provider.use_value))
        elif isinstance(provider, ExistingProvider):
            container.register(token, Registration.of_alias(provider.use_existing))
        elif isinstance(provider, FactoryProvider):
            await registrar.register_provider(provider)

    app = None
    if imports:
        app = Zenject(imports[0], container=container, settings=isolated_settings())
        await app.bootstrap()
        for extra in imports[1:]:
            await app.module_loader.load_module(extra)

    return TestContext(container=container, app=app)


@asynccontextmanager
async def override_container(container: Container, token: Any, value: Any):
    """
    Context manager to temporarily override a token with a value.

    Example:
        async with override_container(container, UserRepo, FakeRepo()):
            result = container.resolve(UserService).list_users()
    """
    original = container.registrations().get(token)
    original_instance = None
    if original is not None and original.kind == "class" and container.is_resolved(token):
        original_instance = container.resolve(token)

    container.register(token, Registration.of_value(value))
    try:
        yield value
    finally:
        if original is None:
            container.unregister(token)
        else:
            container.register(token, original)
            if original_instance is not None:
                container.cache_instance(token, original_instance)


def _override_items(overrides: Optional[Overrides]):
    if not overrides:
        return []
    if isinstance(overrides, Mapping):
        return list(overrides.items())

    items = []
    for descriptor in overrides:
        provider = as_provider(descriptor)
        if not isinstance(provider, ValueProvider):
            raise TypeError(f"Overrides must be value providers, got {descriptor!r}")
        items.append((provider.provide, provider.use_value))
    return items
