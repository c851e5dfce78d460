"""Ports the engine depends on.

The engine never talks to a database directly. It works against an
``InstanceRepository`` obtained from a ``WorkflowStore`` unit of work,
and asks an ``IdGenerator`` for new instance ids.

Every roster operation takes a ``ParticipantKind`` so users and groups
share one code path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from enum import StrEnum

# executionOrder used for non-sequential rosters
UNORDERED = 0


class ParticipantKind(StrEnum):
    """Who a roster entry refers to."""

    USER = "user"
    GROUP = "group"


@dataclass(frozen=True)
class InstanceRecord:
    """Persisted header of a running workflow instance."""

    instance_id: str
    workflow_id: str
    version: int


@dataclass(frozen=True)
class Assignment:
    """One roster entry: a user or group id plus its execution order."""

    member: str
    execution_order: int = UNORDERED


class InstanceRepository(ABC):
    """Persistence operations for instances and their rosters.

    All calls made through one repository belong to the same unit of work.
    """

    # --- instance lifecycle -------------------------------------------------

    @abstractmethod
    async def create_instance(
        self, instance_id: str, workflow_id: str, version: int, task_ids: Sequence[str]
    ) -> None:
        """Insert the instance header and one row per task of its definition."""

    @abstractmethod
    async def delete_instance(self, instance_id: str) -> None:
        """Delete the instance and every row that belongs to it."""

    @abstractmethod
    async def find_instance(self, instance_id: str) -> InstanceRecord | None:
        """Return the instance header, or None if it does not exist."""

    # --- assigned roster ----------------------------------------------------

    @abstractmethod
    async def replace_assigned(
        self,
        instance_id: str,
        task_id: str,
        kind: ParticipantKind,
        members: Sequence[str],
        *,
        sequential: bool,
    ) -> None:
        """Replace the task's assigned roster.

        Clears both kinds for the task, then stores ``members`` of ``kind``
        with orders 1..n when ``sequential`` else ``UNORDERED``.
        """

    @abstractmethod
    async def find_assigned(
        self, instance_id: str, task_id: str, kind: ParticipantKind
    ) -> list[Assignment]:
        """Assigned roster ordered by execution order, then member id."""

    @abstractmethod
    async def count_assigned(self, instance_id: str, task_id: str, kind: ParticipantKind) -> int:
        """Size of the assigned roster."""

    @abstractmethod
    async def change_assigned(
        self, instance_id: str, task_id: str, kind: ParticipantKind, old: str, new: str
    ) -> None:
        """Swap ``old`` for ``new`` keeping its order; no-op if ``old`` is absent."""

    # --- active node + active roster ----------------------------------------

    @abstractmethod
    async def replace_active_node(self, instance_id: str, flow_node_id: str) -> None:
        """Make ``flow_node_id`` the only active node, clearing all active rosters."""

    @abstractmethod
    async def find_active_node(self, instance_id: str) -> str | None:
        """Id of the active flow node, or None."""

    @abstractmethod
    async def replace_active(
        self,
        instance_id: str,
        task_id: str,
        kind: ParticipantKind,
        entries: Sequence[Assignment],
    ) -> None:
        """Replace the instance's active roster (both kinds) with ``entries``."""

    @abstractmethod
    async def find_active(
        self, instance_id: str, task_id: str, kind: ParticipantKind, member: str
    ) -> Assignment | None:
        """The member's active entry on ``task_id``, or None."""

    @abstractmethod
    async def list_active(self, instance_id: str, kind: ParticipantKind) -> list[Assignment]:
        """Active roster of the instance ordered by member id."""

    @abstractmethod
    async def delete_active(
        self, instance_id: str, task_id: str, kind: ParticipantKind, member: str
    ) -> None:
        """Remove one member from the active roster."""

    @abstractmethod
    async def count_active(
        self,
        instance_id: str,
        kind: ParticipantKind,
        task_id: str | None = None,
        member: str | None = None,
    ) -> int:
        """Count active entries, optionally narrowed to a task and/or member."""

    @abstractmethod
    async def change_active(
        self, instance_id: str, task_id: str, kind: ParticipantKind, old: str, new: str
    ) -> None:
        """Swap ``old`` for ``new`` keeping its order; no-op if ``old`` is absent."""


class WorkflowStore(ABC):
    """Factory for transactional units of work.

    Usage:
        async with store.unit_of_work() as repository:
            await repository.find_instance(instance_id)
        # committed here; rolled back if the block raised
    """

    @abstractmethod
    def unit_of_work(self) -> AbstractAsyncContextManager[InstanceRepository]:
        """Open a unit of work yielding a repository bound to it."""


class IdGenerator(ABC):
    """Source of unique identifiers per category."""

    @abstractmethod
    async def generate_id(self, category: str) -> str:
        """Return a new identifier unique within ``category``."""
