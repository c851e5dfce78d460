"""Built-in completion conditions for tasks."""

from __future__ import annotations

from typing import TYPE_CHECKING

from procflow.conditions.base import CompletionCondition

if TYPE_CHECKING:
    from procflow.definition.model import Task
    from procflow.engine.ports import InstanceRepository, ParticipantKind


class SingleTaskCompletionCondition(CompletionCondition):
    """Used for non-multi-instance tasks: one action finishes the task."""

    async def is_completed(
        self,
        repository: InstanceRepository,
        instance_id: str,
        task: Task,
        kind: ParticipantKind,
    ) -> bool:
        return True


class AllCompletionCondition(CompletionCondition):
    """Finished once nobody is left on the active roster."""

    async def is_completed(
        self,
        repository: InstanceRepository,
        instance_id: str,
        task: Task,
        kind: ParticipantKind,
    ) -> bool:
        return await repository.count_active(instance_id, kind) == 0


class OrCompletionCondition(CompletionCondition):
    """Finished once ``threshold`` participants have acted.

    Completed participants are counted as assigned minus still-active, so
    an empty active roster also finishes the task (e.g. a threshold larger
    than the roster).
    """

    def __init__(self, threshold: str):
        self.threshold = int(threshold)
        if self.threshold < 1:
            raise ValueError(f"threshold must be a positive integer, got {threshold!r}")

    async def is_completed(
        self,
        repository: InstanceRepository,
        instance_id: str,
        task: Task,
        kind: ParticipantKind,
    ) -> bool:
        assigned = await repository.count_assigned(instance_id, task.id, kind)
        active = await repository.count_active(instance_id, kind)
        return active == 0 or (assigned - active) >= self.threshold

    def __repr__(self) -> str:
        return f"OrCompletionCondition({self.threshold})"
