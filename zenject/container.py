"""
Token container - the registration store behind module loading.

Maps tokens to registrations (class, value or alias) and caches singleton
instances. Constructor dependencies are read from ``__init__`` type hints;
``Annotated[T, Inject(token)]`` selects a non-class token.
"""

from typing import (
    Annotated,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)
from dataclasses import dataclass
import inspect
import logging
import types
import typing

from .errors import DependencyCycleError, ProviderNotFoundError, UnresolvableDependencyError
from .scopes import Scope
from .tokens import token_name


logger = logging.getLogger("zenject.container")

T = TypeVar("T")

# Module-level cache: class -> constructor dependency plan
_dependency_cache: Dict[type, List["_Dependency"]] = {}

_MISSING = object()


@dataclass(frozen=True)
class Inject:
    """
    Injection metadata marker.

    Usage:
        def __init__(self, api_key: Annotated[str, Inject("API_KEY")]):
            ...

    ``bind(value, owner_class)`` post-processes the resolved value for the
    class being constructed.
    """

    token: Any = None
    optional: bool = False
    bind: Optional[Callable[[Any, type], Any]] = None


def inject(token: Any = None, *, optional: bool = False) -> Inject:
    """
    Create injection metadata.

    Example:
        def __init__(
            self,
            url: Annotated[str, inject(DB_URL)],
            cache: Annotated[Cache, inject(optional=True)] = None,
        ):
            ...
    """
    return Inject(token=token, optional=optional)


@dataclass(frozen=True, slots=True)
class Registration:
    """How a container satisfies one token."""

    kind: str  # "class", "value" or "alias"
    target: Any
    scope: Scope = Scope.TRANSIENT

    @classmethod
    def of_class(cls, implementation: type, scope: Scope = Scope.TRANSIENT) -> "Registration":
        return cls("class", implementation, Scope(scope))

    @classmethod
    def of_value(cls, value: Any) -> "Registration":
        return cls("value", value, Scope.SINGLETON)

    @classmethod
    def of_alias(cls, token: Any) -> "Registration":
        return cls("alias", token, Scope.SINGLETON)


@dataclass(frozen=True, slots=True)
class _Dependency:
    name: str
    token: Any
    optional: bool
    default: Any
    bind: Optional[Callable[[Any, type], Any]] = None


class ResolveCtx:
    """
    Context for one resolution operation.

    Tracks the resolution stack for cycle detection and diagnostics.
    """
    __slots__ = ("stack",)

    def __init__(self):
        self.stack: List[Any] = []

    def push(self, token: Any) -> None:
        """Push token onto resolution stack."""
        if token in self.stack:
            cycle = [token_name(t) for t in self.stack[self.stack.index(token):]]
            cycle.append(token_name(token))
            raise DependencyCycleError(cycle)
        self.stack.append(token)

    def pop(self) -> None:
        """Pop token from resolution stack."""
        self.stack.pop()

    @property
    def requester(self) -> Optional[str]:
        return token_name(self.stack[-1]) if self.stack else None


class Container:
    """
    Registration store with singleton caching and parent fallback.

    Child containers see every registration of their parents; singletons are
    cached by the container that owns the registration.
    """

    __slots__ = ("_registrations", "_instances", "_parent")

    def __init__(self, parent: Optional["Container"] = None):
        self._registrations: Dict[Any, Registration] = {}
        self._instances: Dict[Any, Any] = {}
        self._parent = parent

    @property
    def parent(self) -> Optional["Container"]:
        return self._parent

    def register(self, token: Any, registration: Registration) -> None:
        """
        Register (or replace) the registration for a token.

        Replacing a registration drops any cached instance for it.
        """
        if not isinstance(registration, Registration):
            raise TypeError(f"Expected Registration, got {type(registration).__name__}")

        self._registrations[token] = registration
        self._instances.pop(token, None)
        logger.debug(f"Registered {registration.kind} for token={token_name(token)}")

    def register_singleton(self, token: Any, implementation: Optional[type] = None) -> None:
        """
        Register a class as a singleton.

        Example:
            container.register_singleton(UserService)
            container.register_singleton(UserRepository, SqlUserRepository)
        """
        implementation = implementation if implementation is not None else token
        if not isinstance(implementation, type):
            raise TypeError(
                f"register_singleton() needs a class, got {implementation!r} for {token_name(token)}"
            )
        self.register(token, Registration.of_class(implementation, Scope.SINGLETON))

    def unregister(self, token: Any) -> Optional[Registration]:
        """Remove this container's registration for a token, if any."""
        self._instances.pop(token, None)
        return self._registrations.pop(token, None)

    def cache_instance(self, token: Any, instance: Any) -> None:
        """
        Seed the singleton cache for a token registered in this container.

        Raises:
            ProviderNotFoundError: If this container has no registration for the token
            TypeError: If the registration is not a cacheable class registration
        """
        registration = self._registrations.get(token)
        if registration is None:
            raise ProviderNotFoundError(token=token_name(token))
        if registration.kind != "class" or not registration.scope.cacheable:
            raise TypeError(f"Cannot cache an instance for {token_name(token)}")
        self._instances[token] = instance

    def is_registered(self, token: Any, recursive: bool = True) -> bool:
        """Check if a registration exists for the token."""
        if token in self._registrations:
            return True
        if recursive and self._parent is not None:
            return self._parent.is_registered(token)
        return False

    def is_resolved(self, token: Any) -> bool:
        """
        Check whether the token already has a live instance.

        Values count as resolved; singletons once constructed; aliases when
        their target is. Transients never are.
        """
        found = self._lookup(token)
        if found is None:
            return False

        owner, registration = found
        if registration.kind == "value":
            return True
        if registration.kind == "alias":
            return self.is_resolved(registration.target)
        return token in owner._instances

    def registrations(self) -> Dict[Any, Registration]:
        """Snapshot of this container's own registrations."""
        return dict(self._registrations)

    def resolve(self, token: Union[Type[T], Any]) -> T:
        """
        Resolve a token to an instance.

        Raises:
            ProviderNotFoundError: If nothing is registered for the token
            DependencyCycleError: If constructors depend on each other
        """
        return self._resolve(token, ResolveCtx())

    def create_child_container(self) -> "Container":
        """Create a container that falls back to this one."""
        return Container(parent=self)

    def reset(self) -> None:
        """Drop every registration and cached instance of this container."""
        self._registrations.clear()
        self._instances.clear()

    # ── internals ──

    def _lookup(self, token: Any) -> Optional[Tuple["Container", Registration]]:
        container: Optional[Container] = self
        while container is not None:
            registration = container._registrations.get(token)
            if registration is not None:
                return container, registration
            container = container._parent
        return None

    def _resolve(self, token: Any, ctx: ResolveCtx) -> Any:
        found = self._lookup(token)
        if found is None:
            self._raise_not_found(token, ctx)

        owner, registration = found

        if registration.kind == "value":
            return registration.target

        if registration.kind == "alias":
            ctx.push(token)
            try:
                return self._resolve(registration.target, ctx)
            finally:
                ctx.pop()

        # Singletons are cached (and built) by the owning container
        if registration.scope.cacheable:
            cached = owner._instances.get(token, _MISSING)
            if cached is not _MISSING:
                return cached
            ctx.push(token)
            try:
                instance = owner._construct(registration.target, ctx)
            finally:
                ctx.pop()
            owner._instances[token] = instance
            return instance

        ctx.push(token)
        try:
            return self._construct(registration.target, ctx)
        finally:
            ctx.pop()

    def _construct(self, cls: type, ctx: ResolveCtx) -> Any:
        kwargs = {}
        for dep in _dependencies_of(cls):
            if self.is_registered(dep.token):
                value = self._resolve(dep.token, ctx)
                kwargs[dep.name] = dep.bind(value, cls) if dep.bind is not None else value
            elif dep.default is not _MISSING:
                continue
            elif dep.optional:
                kwargs[dep.name] = None
            else:
                self._raise_not_found(dep.token, ctx)

        return cls(**kwargs)

    def _raise_not_found(self, token: Any, ctx: ResolveCtx) -> None:
        name = token_name(token)
        candidates = []
        container: Optional[Container] = self
        while container is not None:
            for key in container._registrations:
                key_name = token_name(key)
                if key_name != name and (name in key_name or key_name in name):
                    candidates.append(key_name)
            container = container._parent

        raise ProviderNotFoundError(
            token=name,
            requested_by=ctx.requester,
            candidates=candidates,
        )


def create_isolated_container() -> Container:
    """Create a fresh container with no parent, e.g. for tests."""
    return Container()


def _dependencies_of(cls: type) -> List[_Dependency]:
    """
    Extract dependencies from the ``__init__`` signature.

    Returns:
        Ordered dependency plan, cached per class
    """
    plan = _dependency_cache.get(cls)
    if plan is not None:
        return plan

    plan = []
    init = cls.__init__

    if init is object.__init__:
        _dependency_cache[cls] = plan
        return plan

    try:
        sig = inspect.signature(init)
    except ValueError:
        # Builtins may not support signature inspection
        _dependency_cache[cls] = plan
        return plan

    try:
        hints = get_type_hints(init, include_extras=True)
    except Exception:
        hints = {}

    for param_name, param in sig.parameters.items():
        if param_name in ("self", "cls"):
            continue

        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        annotation = hints.get(param_name, param.annotation)
        has_default = param.default is not inspect.Parameter.empty

        if annotation is inspect.Parameter.empty:
            if has_default:
                continue
            raise UnresolvableDependencyError(cls.__qualname__, param_name)

        dep_token, optional, bind = _parse_annotation(annotation)
        plan.append(
            _Dependency(
                name=param_name,
                token=dep_token,
                optional=optional,
                default=param.default if has_default else _MISSING,
                bind=bind,
            )
        )

    _dependency_cache[cls] = plan
    return plan


def _parse_annotation(annotation: Any) -> Tuple[Any, bool, Optional[Callable[[Any, type], Any]]]:
    """Parse a type annotation into (token, optional, bind)."""
    optional = False

    if get_origin(annotation) is Annotated:
        base, *metadata = get_args(annotation)
        for meta in metadata:
            if isinstance(meta, Inject):
                token = meta.token if meta.token is not None else _unwrap_optional(base)[0]
                return token, meta.optional or _unwrap_optional(base)[1], meta.bind
        annotation = base

    annotation, optional = _unwrap_optional(annotation)
    return annotation, optional, None


def _unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Optional[X] -> (X, True)."""
    origin = get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1 and len(args) < len(get_args(annotation)):
            return args[0], True
    return annotation, False
