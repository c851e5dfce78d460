"""Workflow engine entry point.

Starts new instances against the currently effective definition and
rehydrates running ones from the store.

Usage:
    engine = WorkflowEngine(registry, store, id_generator)
    instance = await engine.start("WF", {"amount": 10})
    await instance.assign_user("approve", "alice")
    ...
    instance = await engine.find(instance_id)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from procflow.definition.registry import DefinitionRegistry
from procflow.engine.instance import (
    CompletedWorkflowInstance,
    LiveWorkflowInstance,
    WorkflowInstance,
)
from procflow.engine.ports import IdGenerator, WorkflowStore
from procflow.engine.traversal import proceed
from procflow.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_INSTANCE_ID_LENGTH = 10
DEFAULT_INSTANCE_ID_CATEGORY = "WORKFLOW_INSTANCE_ID"


class WorkflowEngine:
    """Creates and finds workflow instances."""

    def __init__(
        self,
        definitions: DefinitionRegistry,
        store: WorkflowStore,
        id_generator: IdGenerator,
        *,
        instance_id_length: int = DEFAULT_INSTANCE_ID_LENGTH,
        instance_id_category: str = DEFAULT_INSTANCE_ID_CATEGORY,
    ):
        self.definitions = definitions
        self.store = store
        self.id_generator = id_generator
        self.instance_id_length = instance_id_length
        self.instance_id_category = instance_id_category

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        definitions: DefinitionRegistry,
        store: WorkflowStore,
        id_generator: IdGenerator,
    ) -> WorkflowEngine:
        return cls(
            definitions,
            store,
            id_generator,
            instance_id_length=settings.instance_id_length,
            instance_id_category=settings.instance_id_category,
        )

    async def _next_instance_id(self) -> str:
        raw = await self.id_generator.generate_id(self.instance_id_category)
        return raw.rjust(self.instance_id_length, "0")

    async def start(
        self, workflow_id: str, parameters: Mapping[str, Any] | None = None
    ) -> WorkflowInstance:
        """Start a new instance of the latest effective version of ``workflow_id``.

        The returned instance is already positioned on its first task. If
        the graph runs straight into a terminate event, the instance is
        completed (and deleted) before this returns.

        Raises:
            DefinitionNotFoundError: If no version is effective yet
            ConfigurationError: If traversal from the start event fails
        """
        definition = self.definitions.resolve(workflow_id)
        instance_id = await self._next_instance_id()
        parameters = dict(parameters or {})

        async with self.store.unit_of_work() as repository:
            await repository.create_instance(
                instance_id,
                definition.workflow_id,
                definition.version,
                [task.id for task in definition.tasks],
            )
            landed = await proceed(
                definition, repository, instance_id, definition.start_event, parameters
            )

        logger.info(
            "Started workflow instance %s (%s v%d) at %s",
            instance_id,
            definition.workflow_id,
            definition.version,
            landed.id,
        )
        return LiveWorkflowInstance(instance_id, definition, landed, self.store)

    async def find(self, instance_id: str) -> WorkflowInstance:
        """Load a running instance; completed or unknown ids give the completed sentinel."""
        async with self.store.unit_of_work() as repository:
            record = await repository.find_instance(instance_id)
            active_id = await repository.find_active_node(instance_id) if record else None

        if record is None or active_id is None:
            logger.debug("Workflow instance %s not found, treating as completed", instance_id)
            return CompletedWorkflowInstance(instance_id)

        definition = self.definitions.resolve(record.workflow_id, record.version)
        return LiveWorkflowInstance(
            instance_id, definition, definition.find_flow_node(active_id), self.store
        )

    def current_version(self, workflow_id: str) -> int:
        """Version a new instance of ``workflow_id`` would start on."""
        return self.definitions.current_version(workflow_id)
