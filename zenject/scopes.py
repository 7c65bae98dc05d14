"""
Scope definitions.
"""

from enum import Enum


class Scope(str, Enum):
    """Registration lifetimes."""

    SINGLETON = "singleton"  # One instance per container
    TRANSIENT = "transient"  # New instance every resolve

    @property
    def cacheable(self) -> bool:
        return self is Scope.SINGLETON
