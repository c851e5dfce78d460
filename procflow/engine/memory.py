"""In-memory persistence adapter.

Dict-backed implementation of the persistence ports for tests, demos and
single-process embedding. A unit of work snapshots the whole state and
restores it if the block raises, so operations stay all-or-nothing.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from procflow.engine.ports import (
    UNORDERED,
    Assignment,
    InstanceRecord,
    InstanceRepository,
    ParticipantKind,
    WorkflowStore,
)


@dataclass
class _ActiveEntry:
    task_id: str
    kind: ParticipantKind
    assignment: Assignment


@dataclass
class _State:
    instances: dict[str, InstanceRecord] = field(default_factory=dict)
    instance_tasks: dict[str, list[str]] = field(default_factory=dict)
    # (instance_id, task_id, kind) -> roster
    assigned: dict[tuple[str, str, ParticipantKind], list[Assignment]] = field(
        default_factory=dict
    )
    active_nodes: dict[str, str] = field(default_factory=dict)
    active: dict[str, list[_ActiveEntry]] = field(default_factory=dict)


class InMemoryInstanceRepository(InstanceRepository):
    """Repository operating directly on an in-memory state."""

    def __init__(self, state: _State):
        self._state = state

    # --- instance lifecycle -------------------------------------------------

    async def create_instance(
        self, instance_id: str, workflow_id: str, version: int, task_ids: Sequence[str]
    ) -> None:
        if instance_id in self._state.instances:
            raise ValueError(f"Instance already exists. instance id = [{instance_id}]")
        self._state.instances[instance_id] = InstanceRecord(instance_id, workflow_id, version)
        self._state.instance_tasks[instance_id] = list(task_ids)

    async def delete_instance(self, instance_id: str) -> None:
        state = self._state
        state.active.pop(instance_id, None)
        state.active_nodes.pop(instance_id, None)
        for key in [k for k in state.assigned if k[0] == instance_id]:
            del state.assigned[key]
        state.instance_tasks.pop(instance_id, None)
        state.instances.pop(instance_id, None)

    async def find_instance(self, instance_id: str) -> InstanceRecord | None:
        return self._state.instances.get(instance_id)

    # --- assigned roster ----------------------------------------------------

    async def replace_assigned(
        self,
        instance_id: str,
        task_id: str,
        kind: ParticipantKind,
        members: Sequence[str],
        *,
        sequential: bool,
    ) -> None:
        for other in ParticipantKind:
            self._state.assigned.pop((instance_id, task_id, other), None)
        self._state.assigned[(instance_id, task_id, kind)] = [
            Assignment(member, order if sequential else UNORDERED)
            for order, member in enumerate(members, start=1)
        ]

    async def find_assigned(
        self, instance_id: str, task_id: str, kind: ParticipantKind
    ) -> list[Assignment]:
        roster = self._state.assigned.get((instance_id, task_id, kind), [])
        return sorted(roster, key=lambda a: (a.execution_order, a.member))

    async def count_assigned(self, instance_id: str, task_id: str, kind: ParticipantKind) -> int:
        return len(self._state.assigned.get((instance_id, task_id, kind), []))

    async def change_assigned(
        self, instance_id: str, task_id: str, kind: ParticipantKind, old: str, new: str
    ) -> None:
        roster = self._state.assigned.get((instance_id, task_id, kind), [])
        for i, entry in enumerate(roster):
            if entry.member == old:
                roster[i] = Assignment(new, entry.execution_order)
                return

    # --- active node + active roster ----------------------------------------

    async def replace_active_node(self, instance_id: str, flow_node_id: str) -> None:
        self._state.active[instance_id] = []
        self._state.active_nodes[instance_id] = flow_node_id

    async def find_active_node(self, instance_id: str) -> str | None:
        return self._state.active_nodes.get(instance_id)

    async def replace_active(
        self,
        instance_id: str,
        task_id: str,
        kind: ParticipantKind,
        entries: Sequence[Assignment],
    ) -> None:
        self._state.active[instance_id] = [
            _ActiveEntry(task_id, kind, entry) for entry in entries
        ]

    async def find_active(
        self, instance_id: str, task_id: str, kind: ParticipantKind, member: str
    ) -> Assignment | None:
        for entry in self._state.active.get(instance_id, []):
            if entry.task_id == task_id and entry.kind is kind and entry.assignment.member == member:
                return entry.assignment
        return None

    async def list_active(self, instance_id: str, kind: ParticipantKind) -> list[Assignment]:
        entries = [e.assignment for e in self._state.active.get(instance_id, []) if e.kind is kind]
        return sorted(entries, key=lambda a: (a.member, a.execution_order))

    async def delete_active(
        self, instance_id: str, task_id: str, kind: ParticipantKind, member: str
    ) -> None:
        self._state.active[instance_id] = [
            e
            for e in self._state.active.get(instance_id, [])
            if not (e.task_id == task_id and e.kind is kind and e.assignment.member == member)
        ]

    async def count_active(
        self,
        instance_id: str,
        kind: ParticipantKind,
        task_id: str | None = None,
        member: str | None = None,
    ) -> int:
        return sum(
            1
            for e in self._state.active.get(instance_id, [])
            if e.kind is kind
            and (task_id is None or e.task_id == task_id)
            and (member is None or e.assignment.member == member)
        )

    async def change_active(
        self, instance_id: str, task_id: str, kind: ParticipantKind, old: str, new: str
    ) -> None:
        for entry in self._state.active.get(instance_id, []):
            if entry.task_id == task_id and entry.kind is kind and entry.assignment.member == old:
                entry.assignment = Assignment(new, entry.assignment.execution_order)
                return


class InMemoryWorkflowStore(WorkflowStore):
    """Process-local store; units of work are serialized by a lock."""

    def __init__(self) -> None:
        self._state = _State()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[InstanceRepository]:
        async with self._lock:
            snapshot = copy.deepcopy(self._state)
            try:
                yield InMemoryInstanceRepository(self._state)
            except BaseException:
                self._state = snapshot
                raise

    def instance_ids(self) -> list[str]:
        """Ids of all persisted instances."""
        return sorted(self._state.instances)
