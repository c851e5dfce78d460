"""Workflow definition data access layer.

Stores published definition documents and loads them back as built
``WorkflowDefinition`` snapshots.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from procflow.conditions.registry import ConditionRegistry
from procflow.definition.builder import build_definition
from procflow.definition.loader import DefinitionLoader
from procflow.definition.model import WorkflowDefinition
from procflow.definition.schema import WorkflowDocument
from procflow.storage.entities.workflow_definition import WorkflowDefinitionEntity

logger = logging.getLogger(__name__)


class DefinitionRepository:
    """Repository for stored workflow definition documents."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, workflow_id: str, version: int) -> WorkflowDefinitionEntity | None:
        """Get one stored definition by workflow id and version."""
        return await self.session.get(WorkflowDefinitionEntity, (workflow_id, version))

    async def list_all(self, workflow_id: str | None = None) -> list[WorkflowDefinitionEntity]:
        """List stored definitions ordered by workflow id and version.

        Args:
            workflow_id: Optional filter on one workflow id
        """
        query = select(WorkflowDefinitionEntity)
        if workflow_id is not None:
            query = query.where(WorkflowDefinitionEntity.workflow_id == workflow_id)
        query = query.order_by(WorkflowDefinitionEntity.workflow_id, WorkflowDefinitionEntity.version)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save(self, document: WorkflowDocument) -> tuple[WorkflowDefinitionEntity, bool]:
        """Create or replace the stored document for its workflow id and version.

        Returns:
            Tuple of (entity, created) where created is True if new
        """
        payload = document.model_dump(mode="json")
        existing = await self.get(document.workflow_id, document.version)
        if existing is not None:
            existing.name = document.name
            existing.effective_date = document.effective_date
            existing.document = payload
            await self.session.flush()
            return existing, False

        entity = WorkflowDefinitionEntity(
            workflow_id=document.workflow_id,
            version=document.version,
            name=document.name,
            effective_date=document.effective_date,
            document=payload,
        )
        self.session.add(entity)
        await self.session.flush()
        return entity, True

    async def delete(self, workflow_id: str, version: int) -> bool:
        """Delete a stored definition. Returns True if one was removed."""
        entity = await self.get(workflow_id, version)
        if entity is None:
            return False
        await self.session.delete(entity)
        await self.session.flush()
        return True


class DatabaseDefinitionLoader(DefinitionLoader):
    """Loads every stored definition document and builds it."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        conditions: ConditionRegistry | None = None,
    ):
        if session_factory is None:
            from procflow.storage import get_session_factory

            session_factory = get_session_factory()
        self._session_factory = session_factory
        self._conditions = conditions or ConditionRegistry.with_defaults()

    async def load(self) -> list[WorkflowDefinition]:
        async with self._session_factory() as session:
            entities = await DefinitionRepository(session).list_all()
            documents = [entity.document for entity in entities]

        definitions = []
        for document in documents:
            definition = build_definition(document, self._conditions)
            logger.info(
                "Loaded workflow definition %s version %d (%s), effective %s from database",
                definition.workflow_id,
                definition.version,
                definition.name,
                definition.effective_date.isoformat(),
            )
            definitions.append(definition)
        return definitions
