"""Definition registry - resolves which snapshot of a workflow is current."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import date

from procflow.definition.loader import DefinitionLoader
from procflow.definition.model import WorkflowDefinition
from procflow.exceptions import ConfigurationError, DefinitionNotFoundError

logger = logging.getLogger(__name__)

Clock = Callable[[], date]


class DefinitionRegistry:
    """In-memory index of loaded workflow definitions.

    ``resolve(workflow_id)`` returns the highest version whose effective
    date has arrived according to ``clock``; future versions are simply
    invisible. ``resolve(workflow_id, version)`` is an exact lookup, used
    for running instances which stay pinned to the version they started on.
    """

    def __init__(self, loader: DefinitionLoader | None = None, clock: Clock | None = None):
        self._loader = loader
        self._clock = clock or date.today
        self._definitions: dict[tuple[str, int], WorkflowDefinition] = {}
        self._lock = threading.RLock()

    async def reload(self) -> int:
        """Replace the registry contents with a fresh ``loader.load()``.

        Returns:
            Number of definitions loaded
        """
        if self._loader is None:
            raise ConfigurationError("DefinitionRegistry has no loader configured")
        loaded = await self._loader.load()
        definitions: dict[tuple[str, int], WorkflowDefinition] = {}
        for definition in loaded:
            key = (definition.workflow_id, definition.version)
            if key in definitions:
                raise ConfigurationError(
                    f"Workflow definition is duplicated. workflow id = [{key[0]}], version = [{key[1]}]",
                    workflow_id=key[0],
                )
            definitions[key] = definition
        with self._lock:
            self._definitions = definitions
        logger.info("Loaded %d workflow definitions", len(definitions))
        return len(definitions)

    def add(self, definition: WorkflowDefinition) -> None:
        """Register (or replace) a single definition snapshot."""
        with self._lock:
            self._definitions[(definition.workflow_id, definition.version)] = definition

    def definitions(self) -> list[WorkflowDefinition]:
        """All registered snapshots ordered by workflow id and version."""
        with self._lock:
            return [self._definitions[key] for key in sorted(self._definitions)]

    def reference_date(self) -> date:
        return self._clock()

    def resolve(self, workflow_id: str, version: int | None = None) -> WorkflowDefinition:
        """Resolve a definition snapshot.

        Args:
            workflow_id: Workflow id
            version: Exact version, or None for the latest effective one

        Raises:
            DefinitionNotFoundError: If nothing matches
        """
        with self._lock:
            if version is not None:
                found = self._definitions.get((workflow_id, version))
                if found is None:
                    raise DefinitionNotFoundError(workflow_id, version)
                return found

            today = self.reference_date()
            effective = [
                d
                for (wid, _), d in self._definitions.items()
                if wid == workflow_id and d.effective_date <= today
            ]
        if not effective:
            raise DefinitionNotFoundError(workflow_id)
        return max(effective, key=lambda d: d.version)

    def current_version(self, workflow_id: str) -> int:
        """Version number ``resolve(workflow_id)`` would return."""
        return self.resolve(workflow_id).version
