"""
Lifecycle capability interfaces.

Components opt into hooks by subclassing ``OnInit`` (post-construct) and/or
``OnDestroy`` (teardown). Both hooks may be plain or ``async`` methods.
"""

from typing import Any, Awaitable, Optional
import abc
import inspect


class OnInit(abc.ABC):
    """Component that needs initialization after construction."""

    @abc.abstractmethod
    def on_init(self) -> Optional[Awaitable[None]]:
        """Called once the component is constructed and its dependencies injected."""
        ...


class OnDestroy(abc.ABC):
    """Component that needs cleanup before the process exits."""

    @abc.abstractmethod
    def on_destroy(self) -> Optional[Awaitable[None]]:
        """Called during application shutdown."""
        ...


async def call_on_init(instance: Any) -> bool:
    """
    Run the post-construct hook if the instance implements ``OnInit``.

    Returns:
        True if a hook ran
    """
    if not isinstance(instance, OnInit):
        return False
    result = instance.on_init()
    if inspect.isawaitable(result):
        await result
    return True


async def call_on_destroy(instance: Any) -> bool:
    """
    Run the teardown hook if the instance implements ``OnDestroy``.

    Returns:
        True if a hook ran
    """
    if not isinstance(instance, OnDestroy):
        return False
    result = instance.on_destroy()
    if inspect.isawaitable(result):
        await result
    return True
