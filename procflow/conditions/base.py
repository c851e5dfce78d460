"""Strategy interfaces for gateway flows and task completion."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from procflow.definition.model import SequenceFlow, Task
    from procflow.engine.ports import InstanceRepository, ParticipantKind


class FlowProceedCondition(ABC):
    """Decides whether a sequence flow leaving a gateway may be taken."""

    @abstractmethod
    def is_match(
        self,
        instance_id: str,
        parameters: Mapping[str, Any],
        sequence_flow: SequenceFlow,
    ) -> bool:
        """Return True if the flow accepts the given runtime parameters."""


class CompletionCondition(ABC):
    """Decides whether a task may progress given its participant state.

    Evaluated right after an executor's active entry has been removed.
    """

    @abstractmethod
    async def is_completed(
        self,
        repository: InstanceRepository,
        instance_id: str,
        task: Task,
        kind: ParticipantKind,
    ) -> bool:
        """Return True if the task is finished for ``kind`` participants."""
