"""
Zenject - async dependency injection organised in modules.

- Modules: declarative bundles of imports, providers and exports
- Providers: classes, values, factories and aliases behind tokens
- Lifecycle: post-construct hooks and coordinated graceful shutdown
- Plugins: lazily loaded modules registered by name
"""

__version__ = "0.1.0"

# ============================================================================
# Container & tokens
# ============================================================================

from .container import (
    Container,
    Inject,
    Registration,
    ResolveCtx,
    create_isolated_container,
    inject,
)
from .scopes import Scope
from .tokens import (
    APP_CONFIG,
    APP_ENV,
    APP_NAME,
    APP_VERSION,
    LOGGER,
    InjectionToken,
    Token,
    is_token,
    token_name,
)

# ============================================================================
# Providers & hooks
# ============================================================================

from .hooks import OnDestroy, OnInit, call_on_destroy, call_on_init
from .providers import (
    ClassProvider,
    ExistingProvider,
    FactoryProvider,
    Provider,
    ValueProvider,
    as_provider,
    is_provider,
    provider_token,
)
from .registration import ProviderRegistrar

# ============================================================================
# Modules, lifecycle, plugins, application
# ============================================================================

from .module import (
    DynamicModule,
    ModuleLoader,
    ModuleMeta,
    ModuleRegistry,
    ModuleState,
    get_module_meta,
    is_module_ref,
    module,
)
from .lifecycle import AppLifecycle, LifecycleEvent, LifecyclePhase
from .plugins import PluginManager
from .settings import RuntimeSettings
from .app import Zenject

# ============================================================================
# Errors
# ============================================================================

from .errors import (
    DependencyCycleError,
    ModuleCycleError,
    ModuleDeclarationError,
    NotBootstrappedError,
    PluginExportError,
    PluginNotRegisteredError,
    ProviderNotFoundError,
    ProviderRegistrationError,
    UnresolvableDependencyError,
    ZenjectError,
)


__all__ = [
    # Container & tokens
    "Container",
    "Inject",
    "inject",
    "Registration",
    "ResolveCtx",
    "create_isolated_container",
    "Scope",
    "InjectionToken",
    "Token",
    "is_token",
    "token_name",
    "APP_NAME",
    "APP_VERSION",
    "APP_ENV",
    "APP_CONFIG",
    "LOGGER",
    # Providers & hooks
    "ClassProvider",
    "ValueProvider",
    "FactoryProvider",
    "ExistingProvider",
    "Provider",
    "as_provider",
    "is_provider",
    "provider_token",
    "ProviderRegistrar",
    "OnInit",
    "OnDestroy",
    "call_on_init",
    "call_on_destroy",
    # Modules, lifecycle, plugins, application
    "module",
    "DynamicModule",
    "ModuleLoader",
    "ModuleMeta",
    "ModuleRegistry",
    "ModuleState",
    "get_module_meta",
    "is_module_ref",
    "AppLifecycle",
    "LifecycleEvent",
    "LifecyclePhase",
    "PluginManager",
    "RuntimeSettings",
    "Zenject",
    # Errors
    "ZenjectError",
    "ProviderNotFoundError",
    "DependencyCycleError",
    "UnresolvableDependencyError",
    "ProviderRegistrationError",
    "ModuleDeclarationError",
    "ModuleCycleError",
    "PluginNotRegisteredError",
    "PluginExportError",
    "NotBootstrappedError",
]
