"""
Error types with rich diagnostics.
"""

import json
from typing import Any, List, Optional, Sequence


class ZenjectError(Exception):
    """Base exception for zenject errors."""
    pass


class ProviderNotFoundError(ZenjectError):
    """No registration found for requested token."""

    def __init__(
        self,
        token: str,
        requested_by: Optional[str] = None,
        candidates: Optional[List[str]] = None,
    ):
        self.token = token
        self.requested_by = requested_by
        self.candidates = candidates or []

        msg = f"No provider found for token={token}"
        if requested_by:
            msg += f"\nRequested by: {requested_by}"

        if self.candidates:
            msg += "\n\nCandidates found:"
            for candidate in self.candidates:
                msg += f"\n  - {candidate}"

        msg += "\n\nSuggested fixes:"
        msg += f"\n  - Register a provider for {token} before it is resolved"
        msg += "\n  - Export it from the module that provides it and import that module"

        super().__init__(msg)


class DependencyCycleError(ZenjectError):
    """Circular constructor dependency detected while resolving."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)

        msg = "Detected dependency cycle:"
        for i, token in enumerate(self.cycle):
            arrow = " -> " if i < len(self.cycle) - 1 else ""
            msg += f"\n  {token}{arrow}"

        msg += "\n\nSuggested fixes:"
        msg += "\n  - Extract the shared state into a third service"
        msg += "\n  - Replace one constructor dependency with a factory provider"

        super().__init__(msg)


class UnresolvableDependencyError(ZenjectError):
    """A constructor parameter carries no usable type information."""

    def __init__(self, owner: str, parameter: str):
        self.owner = owner
        self.parameter = parameter

        msg = (
            f"Missing type annotation for parameter '{parameter}' in {owner}.__init__"
            f"\n\nSuggested fixes:"
            f"\n  - Annotate the parameter with the dependency type"
            f"\n  - Use Annotated[T, Inject(token)] for non-class tokens"
            f"\n  - Give the parameter a default value"
        )

        super().__init__(msg)


class ProviderRegistrationError(ZenjectError):
    """Provider descriptor matches none of the supported shapes."""

    def __init__(self, descriptor: Any, reason: Optional[str] = None):
        self.descriptor = descriptor
        self.reason = reason

        msg = f"Unsupported provider type: {_describe(descriptor)}"
        if reason:
            msg += f"\nReason: {reason}"

        msg += "\n\nSupported shapes:"
        msg += "\n  - a class (constructor provider)"
        msg += "\n  - ClassProvider(provide, use_class, singleton=True)"
        msg += "\n  - ValueProvider(provide, use_value)"
        msg += "\n  - FactoryProvider(provide, use_factory, deps=())"
        msg += "\n  - ExistingProvider(provide, use_existing)"

        super().__init__(msg)


class ModuleDeclarationError(ZenjectError):
    """Module reference or module metadata is invalid."""
    pass


class ModuleCycleError(ZenjectError):
    """Modules import each other while loading."""

    def __init__(self, path: Sequence[str]):
        self.path = list(path)

        msg = "Circular module import detected:\n  " + " -> ".join(self.path)
        msg += "\n\nSuggested fixes:"
        msg += "\n  - Move the shared providers into a module both can import"
        msg += "\n  - Load one of the modules lazily through the plugin manager"

        super().__init__(msg)


class PluginNotRegisteredError(ZenjectError):
    """Plugin requested by name was never registered."""

    def __init__(self, name: str, registered: Optional[Sequence[str]] = None):
        self.name = name
        self.registered = list(registered or [])

        msg = f"Plugin '{name}' is not registered"
        if self.registered:
            msg += "\n\nRegistered plugins:"
            for plugin in self.registered:
                msg += f"\n  - {plugin}"

        super().__init__(msg)


class PluginExportError(ZenjectError):
    """Plugin loader produced no loadable module."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Plugin '{name}' did not export any modules")


class NotBootstrappedError(ZenjectError):
    """Application used before bootstrap() completed."""
    pass


def _describe(descriptor: Any) -> str:
    """Serialize a descriptor for diagnostics, JSON when possible."""
    try:
        return json.dumps(descriptor, default=repr, sort_keys=True)
    except (TypeError, ValueError):
        return repr(descriptor)
