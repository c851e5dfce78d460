"""Workflow instance facade.

Two implementations share the ``WorkflowInstance`` interface:

- ``LiveWorkflowInstance``: bound to a definition snapshot and the
  instance's persisted state; every call runs in one unit of work.
- ``CompletedWorkflowInstance``: returned when no persisted state exists
  for an id. Deleting the instance *is* completing it, so reads degrade
  to empty answers and mutators raise ``WorkflowCompletedError``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from procflow.context import get_current_user
from procflow.definition.model import Event, FlowNode, Task, WorkflowDefinition
from procflow.engine.ports import InstanceRepository, ParticipantKind, WorkflowStore
from procflow.engine.traversal import process_task, proceed, refresh_active_roster
from procflow.exceptions import (
    AssignmentError,
    UnsupportedOperationError,
    WorkflowCompletedError,
    WorkflowStateError,
)

logger = logging.getLogger(__name__)


class WorkflowInstance(ABC):
    """Public contract of a workflow instance."""

    # --- single-member conveniences ------------------------------------------

    async def assign_user(self, task_id: str, user: str) -> None:
        await self.assign_users(task_id, [user])

    async def assign_group(self, task_id: str, group: str) -> None:
        await self.assign_groups(task_id, [group])

    async def assign_user_to_lane(self, lane_id: str, user: str) -> None:
        await self.assign_users_to_lane(lane_id, [user])

    async def assign_group_to_lane(self, lane_id: str, group: str) -> None:
        await self.assign_groups_to_lane(lane_id, [group])

    # --- mutators -------------------------------------------------------------

    @abstractmethod
    async def complete_user_task(
        self, parameters: Mapping[str, Any] | None = None, user: str | None = None
    ) -> None:
        """Complete the active task as ``user`` (defaults to the acting user)."""

    @abstractmethod
    async def complete_group_task(
        self, group: str, parameters: Mapping[str, Any] | None = None
    ) -> None:
        """Complete the active task on behalf of ``group``."""

    @abstractmethod
    async def trigger_event(
        self, trigger_id: str, parameters: Mapping[str, Any] | None = None
    ) -> None:
        """Fire the boundary event listening for ``trigger_id`` on the active task."""

    @abstractmethod
    async def assign_users(self, task_id: str, users: Sequence[str]) -> None: ...

    @abstractmethod
    async def assign_groups(self, task_id: str, groups: Sequence[str]) -> None: ...

    @abstractmethod
    async def assign_users_to_lane(self, lane_id: str, users: Sequence[str]) -> None: ...

    @abstractmethod
    async def assign_groups_to_lane(self, lane_id: str, groups: Sequence[str]) -> None: ...

    @abstractmethod
    async def change_assigned_user(self, task_id: str, old_user: str, new_user: str) -> None: ...

    @abstractmethod
    async def change_assigned_group(
        self, task_id: str, old_group: str, new_group: str
    ) -> None: ...

    # --- queries --------------------------------------------------------------

    @abstractmethod
    async def get_assigned_users(self, task_id: str) -> list[str]: ...

    @abstractmethod
    async def get_assigned_groups(self, task_id: str) -> list[str]: ...

    @abstractmethod
    async def has_active_user_task(self, user: str) -> bool: ...

    @abstractmethod
    async def has_active_group_task(self, group: str) -> bool: ...

    @abstractmethod
    def is_active(self, flow_node_id: str) -> bool: ...

    @abstractmethod
    def is_completed(self) -> bool: ...

    @property
    @abstractmethod
    def instance_id(self) -> str: ...

    @property
    @abstractmethod
    def workflow_id(self) -> str: ...

    @property
    @abstractmethod
    def version(self) -> int: ...

    @property
    @abstractmethod
    def active_flow_node_id(self) -> str: ...


class LiveWorkflowInstance(WorkflowInstance):
    """Instance with persisted state, pinned to one definition snapshot."""

    def __init__(
        self,
        instance_id: str,
        definition: WorkflowDefinition,
        active: FlowNode,
        store: WorkflowStore,
    ):
        self._instance_id = instance_id
        self._definition = definition
        self._active = active
        self._store = store

    # --- identity ---------------------------------------------------------------

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def workflow_id(self) -> str:
        return self._definition.workflow_id

    @property
    def version(self) -> int:
        return self._definition.version

    @property
    def definition(self) -> WorkflowDefinition:
        return self._definition

    @property
    def active_flow_node_id(self) -> str:
        return self._active.id

    def is_active(self, flow_node_id: str) -> bool:
        return self._active.id == flow_node_id

    def is_completed(self) -> bool:
        return isinstance(self._active, Event) and self._active.is_terminate

    # --- internal helpers -------------------------------------------------------

    async def _sync_active(self, repository: InstanceRepository) -> FlowNode:
        """Re-read the active node; fails if the instance is gone."""
        if self.is_completed():
            raise WorkflowCompletedError(self._instance_id)
        node_id = await repository.find_active_node(self._instance_id)
        if node_id is None:
            raise WorkflowCompletedError(self._instance_id)
        self._active = self._definition.find_flow_node(node_id)
        return self._active

    async def _active_task(self, repository: InstanceRepository) -> Task:
        node = await self._sync_active(repository)
        if not isinstance(node, Task):
            raise WorkflowStateError(
                f"Active flow node is not a task. {self}", instance_id=self._instance_id
            )
        return node

    async def _complete(
        self, kind: ParticipantKind, executor: str | None, parameters: Mapping[str, Any] | None
    ) -> None:
        parameters = dict(parameters or {})
        async with self._store.unit_of_work() as repository:
            task = await self._active_task(repository)
            if executor is None:
                raise WorkflowStateError(
                    f"Active task is not found for {kind} = [None]. {self}",
                    instance_id=self._instance_id,
                    task_id=task.id,
                )
            completed = await process_task(task, repository, self._instance_id, kind, executor)
            landed = None
            if completed:
                landed = await proceed(
                    self._definition, repository, self._instance_id, task, parameters
                )
        logger.info(
            "Workflow instance %s: %s %s completed task %s%s",
            self._instance_id,
            kind,
            executor,
            task.id,
            f", now at {landed.id}" if landed is not None else "",
        )
        if landed is not None:
            self._active = landed

    def _check_assignee_count(self, task: Task, members: Sequence[str], kind: ParticipantKind):
        if len(set(members)) != len(members):
            raise AssignmentError(
                f"Duplicate {kind}s cannot be assigned to a task. "
                f"instance id = [{self._instance_id}], task id = [{task.id}], "
                f"{kind}s = {list(members)}.",
                instance_id=self._instance_id,
                task_id=task.id,
            )
        if not task.is_multi_instance and len(members) > 1:
            raise AssignmentError(
                f"Multiple {kind}s cannot be assigned to a non multi-instance task. "
                f"instance id = [{self._instance_id}], task id = [{task.id}], "
                f"{kind}s = {list(members)}.",
                instance_id=self._instance_id,
                task_id=task.id,
            )

    async def _assign(
        self, tasks: Sequence[Task], kind: ParticipantKind, members: Sequence[str]
    ) -> None:
        for task in tasks:
            self._check_assignee_count(task, members, kind)
        async with self._store.unit_of_work() as repository:
            active = await self._sync_active(repository)
            for task in tasks:
                await repository.replace_assigned(
                    self._instance_id, task.id, kind, members, sequential=task.is_sequential
                )
                if active.id == task.id:
                    roster = await repository.find_assigned(self._instance_id, task.id, kind)
                    await refresh_active_roster(repository, self._instance_id, task, kind, roster)
        logger.debug(
            "Workflow instance %s: assigned %ss %s to %s",
            self._instance_id,
            kind,
            list(members),
            [task.id for task in tasks],
        )

    async def _change_assigned(
        self, task_id: str, kind: ParticipantKind, old: str, new: str
    ) -> None:
        task = self._definition.find_task(task_id)
        async with self._store.unit_of_work() as repository:
            active = await self._sync_active(repository)
            assigned = [
                a.member for a in await repository.find_assigned(self._instance_id, task.id, kind)
            ]
            if old not in assigned:
                raise WorkflowStateError(
                    f"{kind.capitalize()} is not assigned to task. "
                    f"instance id = [{self._instance_id}], task id = [{task.id}], "
                    f"old {kind} = [{old}], assigned {kind}s = {assigned}.",
                    instance_id=self._instance_id,
                    task_id=task.id,
                    executor=old,
                )
            if new != old and new in assigned:
                raise AssignmentError(
                    f"{kind.capitalize()} is already assigned to task. "
                    f"instance id = [{self._instance_id}], task id = [{task.id}], "
                    f"new {kind} = [{new}], assigned {kind}s = {assigned}.",
                    instance_id=self._instance_id,
                    task_id=task.id,
                    executor=new,
                )
            await repository.change_assigned(self._instance_id, task.id, kind, old, new)
            if active.id == task.id:
                # no-op unless old is currently active
                await repository.change_active(self._instance_id, task.id, kind, old, new)

    async def _assigned(self, task_id: str, kind: ParticipantKind) -> list[str]:
        task = self._definition.find_task(task_id)
        async with self._store.unit_of_work() as repository:
            roster = await repository.find_assigned(self._instance_id, task.id, kind)
        return [a.member for a in roster]

    async def _has_active(self, kind: ParticipantKind, member: str) -> bool:
        async with self._store.unit_of_work() as repository:
            node_id = await repository.find_active_node(self._instance_id)
            if node_id is None:
                return False
            count = await repository.count_active(
                self._instance_id, kind, task_id=node_id, member=member
            )
        return count != 0

    # --- mutators -----------------------------------------------------------------

    async def complete_user_task(
        self, parameters: Mapping[str, Any] | None = None, user: str | None = None
    ) -> None:
        executor = user if user is not None else get_current_user()
        await self._complete(ParticipantKind.USER, executor, parameters)

    async def complete_group_task(
        self, group: str, parameters: Mapping[str, Any] | None = None
    ) -> None:
        await self._complete(ParticipantKind.GROUP, group, parameters)

    async def trigger_event(
        self, trigger_id: str, parameters: Mapping[str, Any] | None = None
    ) -> None:
        parameters = dict(parameters or {})
        async with self._store.unit_of_work() as repository:
            active = await self._sync_active(repository)
            events = [
                e
                for e in self._definition.find_boundary_events(trigger_id)
                if e.attached_task_id == active.id
            ]
            if not events:
                raise WorkflowStateError(
                    "Boundary Event is not found for the event trigger. "
                    f"event trigger id = [{trigger_id}], active flow node = [{active.id}]. {self}",
                    instance_id=self._instance_id,
                    task_id=active.id,
                )
            landed = await proceed(
                self._definition, repository, self._instance_id, events[0], parameters
            )
        logger.info(
            "Workflow instance %s: trigger %s interrupted %s, now at %s",
            self._instance_id,
            trigger_id,
            active.id,
            landed.id,
        )
        self._active = landed

    async def assign_users(self, task_id: str, users: Sequence[str]) -> None:
        task = self._definition.find_task(task_id)
        await self._assign([task], ParticipantKind.USER, list(users))

    async def assign_groups(self, task_id: str, groups: Sequence[str]) -> None:
        task = self._definition.find_task(task_id)
        await self._assign([task], ParticipantKind.GROUP, list(groups))

    async def assign_users_to_lane(self, lane_id: str, users: Sequence[str]) -> None:
        tasks = self._definition.tasks_in_lane(lane_id)
        await self._assign(tasks, ParticipantKind.USER, list(users))

    async def assign_groups_to_lane(self, lane_id: str, groups: Sequence[str]) -> None:
        tasks = self._definition.tasks_in_lane(lane_id)
        await self._assign(tasks, ParticipantKind.GROUP, list(groups))

    async def change_assigned_user(self, task_id: str, old_user: str, new_user: str) -> None:
        await self._change_assigned(task_id, ParticipantKind.USER, old_user, new_user)

    async def change_assigned_group(self, task_id: str, old_group: str, new_group: str) -> None:
        await self._change_assigned(task_id, ParticipantKind.GROUP, old_group, new_group)

    # --- queries ------------------------------------------------------------------

    async def get_assigned_users(self, task_id: str) -> list[str]:
        return await self._assigned(task_id, ParticipantKind.USER)

    async def get_assigned_groups(self, task_id: str) -> list[str]:
        return await self._assigned(task_id, ParticipantKind.GROUP)

    async def has_active_user_task(self, user: str) -> bool:
        return await self._has_active(ParticipantKind.USER, user)

    async def has_active_group_task(self, group: str) -> bool:
        return await self._has_active(ParticipantKind.GROUP, group)

    def __str__(self) -> str:
        return (
            f"instance id = [{self._instance_id}], workflow id = [{self.workflow_id}], "
            f"version = [{self.version}], active flow node id = [{self._active.id}]"
        )

    def __repr__(self) -> str:
        return f"<LiveWorkflowInstance {self}>"


class CompletedWorkflowInstance(WorkflowInstance):
    """Sentinel for an instance with no persisted state."""

    def __init__(self, instance_id: str):
        self._instance_id = instance_id

    def _completed(self) -> WorkflowCompletedError:
        return WorkflowCompletedError(self._instance_id)

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def workflow_id(self) -> str:
        raise UnsupportedOperationError(f"Workflow is already completed. {self}")

    @property
    def version(self) -> int:
        raise UnsupportedOperationError(f"Workflow is already completed. {self}")

    @property
    def active_flow_node_id(self) -> str:
        raise UnsupportedOperationError(f"Workflow is already completed. {self}")

    def is_active(self, flow_node_id: str) -> bool:
        return False

    def is_completed(self) -> bool:
        return True

    async def has_active_user_task(self, user: str) -> bool:
        return False

    async def has_active_group_task(self, group: str) -> bool:
        return False

    async def get_assigned_users(self, task_id: str) -> list[str]:
        return []

    async def get_assigned_groups(self, task_id: str) -> list[str]:
        return []

    async def complete_user_task(
        self, parameters: Mapping[str, Any] | None = None, user: str | None = None
    ) -> None:
        raise self._completed()

    async def complete_group_task(
        self, group: str, parameters: Mapping[str, Any] | None = None
    ) -> None:
        raise self._completed()

    async def trigger_event(
        self, trigger_id: str, parameters: Mapping[str, Any] | None = None
    ) -> None:
        raise self._completed()

    async def assign_users(self, task_id: str, users: Sequence[str]) -> None:
        raise self._completed()

    async def assign_groups(self, task_id: str, groups: Sequence[str]) -> None:
        raise self._completed()

    async def assign_users_to_lane(self, lane_id: str, users: Sequence[str]) -> None:
        raise self._completed()

    async def assign_groups_to_lane(self, lane_id: str, groups: Sequence[str]) -> None:
        raise self._completed()

    async def change_assigned_user(self, task_id: str, old_user: str, new_user: str) -> None:
        raise self._completed()

    async def change_assigned_group(self, task_id: str, old_group: str, new_group: str) -> None:
        raise self._completed()

    def __str__(self) -> str:
        return f"instance id = [{self._instance_id}]"

    def __repr__(self) -> str:
        return f"<CompletedWorkflowInstance {self}>"
