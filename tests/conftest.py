"""Shared test fixtures for procflow.

Provides settings, definition registries and an engine wired to the
in-memory store, used across unit and integration tests.
"""

from collections.abc import Callable
from datetime import date
from typing import Any
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.definition import DefinitionRegistry, WorkflowDefinition, build_definition
from procflow.engine import InMemoryWorkflowStore, SequenceIdGenerator, WorkflowEngine
from procflow.settings import Settings

TODAY = date(2024, 6, 1)


# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings with safe defaults."""
    return Settings(
        environment="testing",
        debug=False,
        database_url="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
def mock_settings(test_settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Mock get_settings() to return test settings."""
    from procflow import settings

    monkeypatch.setattr(settings, "get_settings", lambda: test_settings)
    return test_settings


# =============================================================================
# ENGINE
# =============================================================================


@pytest.fixture
def definitions() -> DefinitionRegistry:
    """Empty registry with a fixed reference date."""
    return DefinitionRegistry(clock=lambda: TODAY)


@pytest.fixture
def register(definitions: DefinitionRegistry) -> Callable[[dict[str, Any]], WorkflowDefinition]:
    """Build a document and add it to the registry."""

    def _register(document: dict[str, Any]) -> WorkflowDefinition:
        definition = build_definition(document)
        definitions.add(definition)
        return definition

    return _register


@pytest.fixture
def store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture
def engine(definitions: DefinitionRegistry, store: InMemoryWorkflowStore) -> WorkflowEngine:
    """Engine over the in-memory store with per-test id counters."""
    return WorkflowEngine(definitions, store, SequenceIdGenerator())


# =============================================================================
# DATABASE MOCKS
# =============================================================================


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """Mock database session for unit tests."""
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session
