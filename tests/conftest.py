"""Shared test fixtures: a fresh EngineState per test, fake store and publisher."""

from unittest.mock import AsyncMock

import pytest

from config.settings import Settings
from src.pm_push.infrastructure.publishers import InMemoryPublisher
from src.pm_store.application.audit import AuditRecorder
from src.pm_store.domain.state import EngineState
from tests.factories import make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def state(settings: Settings) -> EngineState:
    return EngineState(settings)


@pytest.fixture
def store() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def publisher() -> InMemoryPublisher:
    return InMemoryPublisher()


@pytest.fixture
def audit(state: EngineState, store: AsyncMock, publisher: InMemoryPublisher) -> AuditRecorder:
    return AuditRecorder(state, store, publisher)
