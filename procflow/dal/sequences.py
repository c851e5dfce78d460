"""Table-backed identifier generation."""

from __future__ import annotations

import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from procflow.engine.ports import IdGenerator
from procflow.storage.entities.id_sequence import IdSequenceEntity

logger = logging.getLogger(__name__)


def _insert_for(dialect_name: str):
    if dialect_name == "sqlite":
        return sqlite.insert
    return postgresql.insert


class TableIdGenerator(IdGenerator):
    """Identifier generator backed by the ``id_sequence`` table.

    Every call increments the category's counter in its own committed
    transaction, so ids are never reused even when the caller's unit of
    work rolls back.

    The increment is one ``INSERT ... ON CONFLICT DO UPDATE ... RETURNING``
    statement: the first call for a category creates its row with value 1,
    and concurrent first calls serialize on the primary key instead of
    racing to insert.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from procflow.storage import get_session_factory

            session_factory = get_session_factory()
        self._session_factory = session_factory

    async def generate_id(self, category: str) -> str:
        async with self._session_factory() as session:
            async with session.begin():
                insert = _insert_for(session.get_bind().dialect.name)
                stmt = insert(IdSequenceEntity).values(category=category, last_value=1)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["category"],
                    set_={"last_value": IdSequenceEntity.last_value + 1},
                ).returning(IdSequenceEntity.last_value)
                result = await session.execute(stmt)
                value = result.scalar_one()
        if value == 1:
            logger.info("Started id sequence %s", category)
        return str(value)
