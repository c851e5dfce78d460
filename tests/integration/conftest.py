"""Integration test fixtures backed by a real SQLite database.

Each test gets a fresh database file under ``tmp_path`` with the full
schema created from ``Base.metadata``, accessed through aiosqlite.
"""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

import procflow.storage.entities  # noqa: F401  (registers all models with Base.metadata)
from procflow.dal import SqlWorkflowStore, TableIdGenerator
from procflow.engine import WorkflowEngine
from procflow.storage import create_schema
from procflow.storage.models import Base

# =============================================================================
# DATABASE
# =============================================================================


@pytest_asyncio.fixture
async def integration_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create an async engine on a per-test SQLite file with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'procflow.db'}", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(integration_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=integration_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def integration_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session whose transaction is committed by the test itself."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def row_counts(session_factory: async_sessionmaker[AsyncSession]):
    """Return a coroutine counting rows in every table."""

    async def _count() -> dict[str, int]:
        counts: dict[str, Any] = {}
        async with session_factory() as session:
            for table in Base.metadata.sorted_tables:
                result = await session.execute(select(func.count()).select_from(table))
                counts[table.name] = result.scalar()
        return counts

    return _count


# =============================================================================
# ENGINE
# =============================================================================


@pytest.fixture
def sql_store(session_factory: async_sessionmaker[AsyncSession]) -> SqlWorkflowStore:
    return SqlWorkflowStore(session_factory)


@pytest.fixture
def sql_engine(definitions, sql_store, session_factory) -> WorkflowEngine:
    """Engine persisting to SQLite with table-backed instance ids."""
    return WorkflowEngine(definitions, sql_store, TableIdGenerator(session_factory))
