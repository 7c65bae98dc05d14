"""
Shared test fixtures for the Zenject test suite.
"""

import os

import pytest

from zenject.container import Container
from zenject.lifecycle import AppLifecycle
from zenject.module import ModuleLoader
from zenject.registration import ProviderRegistrar
from zenject.settings import RuntimeSettings


# Variables the config/logger tests read; cleared so the host shell cannot leak in
_ENV_PREFIXES = ("APP_", "ZENJECT_", "LOG_LEVEL", "LOGGER_", "TEST_")


# ============================================================================
# Core fixtures
# ============================================================================


@pytest.fixture
def container() -> Container:
    return Container()


@pytest.fixture
def registrar(container) -> ProviderRegistrar:
    return ProviderRegistrar(container)


@pytest.fixture
def loader(container, registrar) -> ModuleLoader:
    return ModuleLoader(container, registrar)


@pytest.fixture
def settings() -> RuntimeSettings:
    """Settings that never exit the process nor install signal handlers."""
    return RuntimeSettings(env="test", exit_on_shutdown=False, handle_signals=False)


@pytest.fixture
def lifecycle(container, settings) -> AppLifecycle:
    return AppLifecycle(container, settings)


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    yield monkeypatch
