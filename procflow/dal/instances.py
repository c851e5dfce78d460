"""Workflow instance data access layer.

SQLAlchemy implementation of the engine's persistence port. Statements
go through the ORM-enabled ``insert``/``update``/``delete`` constructs and
read plain columns, so nothing stateful accumulates in the session's
identity map between calls.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from procflow.engine.ports import (
    UNORDERED,
    Assignment,
    InstanceRecord,
    InstanceRepository,
    ParticipantKind,
    WorkflowStore,
)
from procflow.storage.entities.instance import (
    ActiveFlowNodeEntity,
    ActiveGroupTaskEntity,
    ActiveUserTaskEntity,
    InstanceFlowNodeEntity,
    TaskAssignedGroupEntity,
    TaskAssignedUserEntity,
    WorkflowInstanceEntity,
)

logger = logging.getLogger(__name__)

_ASSIGNED: dict[ParticipantKind, Any] = {
    ParticipantKind.USER: TaskAssignedUserEntity,
    ParticipantKind.GROUP: TaskAssignedGroupEntity,
}
_ACTIVE: dict[ParticipantKind, Any] = {
    ParticipantKind.USER: ActiveUserTaskEntity,
    ParticipantKind.GROUP: ActiveGroupTaskEntity,
}

# Child tables in deletion order; the header row goes last
_INSTANCE_TABLES = (
    ActiveUserTaskEntity,
    ActiveGroupTaskEntity,
    ActiveFlowNodeEntity,
    TaskAssignedUserEntity,
    TaskAssignedGroupEntity,
    InstanceFlowNodeEntity,
    WorkflowInstanceEntity,
)


class SqlInstanceRepository(InstanceRepository):
    """Repository for instance headers, rosters and the active node."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # =========================================================================
    # INSTANCE LIFECYCLE
    # =========================================================================

    async def create_instance(
        self, instance_id: str, workflow_id: str, version: int, task_ids: Sequence[str]
    ) -> None:
        await self.session.execute(
            insert(WorkflowInstanceEntity),
            [{"instance_id": instance_id, "workflow_id": workflow_id, "version": version}],
        )
        if task_ids:
            await self.session.execute(
                insert(InstanceFlowNodeEntity),
                [
                    {
                        "instance_id": instance_id,
                        "flow_node_id": task_id,
                        "workflow_id": workflow_id,
                        "version": version,
                    }
                    for task_id in task_ids
                ],
            )

    async def delete_instance(self, instance_id: str) -> None:
        for model in _INSTANCE_TABLES:
            await self.session.execute(delete(model).where(model.instance_id == instance_id))
        logger.debug("Deleted workflow instance %s", instance_id)

    async def find_instance(self, instance_id: str) -> InstanceRecord | None:
        result = await self.session.execute(
            select(
                WorkflowInstanceEntity.instance_id,
                WorkflowInstanceEntity.workflow_id,
                WorkflowInstanceEntity.version,
            ).where(WorkflowInstanceEntity.instance_id == instance_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return InstanceRecord(row.instance_id, row.workflow_id, row.version)

    # =========================================================================
    # ASSIGNED ROSTER
    # =========================================================================

    async def replace_assigned(
        self,
        instance_id: str,
        task_id: str,
        kind: ParticipantKind,
        members: Sequence[str],
        *,
        sequential: bool,
    ) -> None:
        for model in _ASSIGNED.values():
            await self.session.execute(
                delete(model).where(model.instance_id == instance_id, model.flow_node_id == task_id)
            )
        if not members:
            return
        await self.session.execute(
            insert(_ASSIGNED[kind]),
            [
                {
                    "instance_id": instance_id,
                    "flow_node_id": task_id,
                    "member_id": member,
                    "execution_order": order if sequential else UNORDERED,
                }
                for order, member in enumerate(members, start=1)
            ],
        )

    async def find_assigned(
        self, instance_id: str, task_id: str, kind: ParticipantKind
    ) -> list[Assignment]:
        model = _ASSIGNED[kind]
        result = await self.session.execute(
            select(model.member_id, model.execution_order)
            .where(model.instance_id == instance_id, model.flow_node_id == task_id)
            .order_by(model.execution_order, model.member_id)
        )
        return [Assignment(row.member_id, row.execution_order) for row in result]

    async def count_assigned(self, instance_id: str, task_id: str, kind: ParticipantKind) -> int:
        model = _ASSIGNED[kind]
        result = await self.session.execute(
            select(func.count())
            .select_from(model)
            .where(model.instance_id == instance_id, model.flow_node_id == task_id)
        )
        return result.scalar() or 0

    async def change_assigned(
        self, instance_id: str, task_id: str, kind: ParticipantKind, old: str, new: str
    ) -> None:
        model = _ASSIGNED[kind]
        await self.session.execute(
            update(model)
            .where(
                model.instance_id == instance_id,
                model.flow_node_id == task_id,
                model.member_id == old,
            )
            .values({model.member_id: new})
        )

    # =========================================================================
    # ACTIVE NODE + ACTIVE ROSTER
    # =========================================================================

    async def _clear_active_rosters(self, instance_id: str) -> None:
        for model in _ACTIVE.values():
            await self.session.execute(delete(model).where(model.instance_id == instance_id))

    async def replace_active_node(self, instance_id: str, flow_node_id: str) -> None:
        await self._clear_active_rosters(instance_id)
        await self.session.execute(
            delete(ActiveFlowNodeEntity).where(ActiveFlowNodeEntity.instance_id == instance_id)
        )
        await self.session.execute(
            insert(ActiveFlowNodeEntity),
            [{"instance_id": instance_id, "flow_node_id": flow_node_id}],
        )

    async def find_active_node(self, instance_id: str) -> str | None:
        result = await self.session.execute(
            select(ActiveFlowNodeEntity.flow_node_id).where(
                ActiveFlowNodeEntity.instance_id == instance_id
            )
        )
        return result.scalar_one_or_none()

    async def replace_active(
        self,
        instance_id: str,
        task_id: str,
        kind: ParticipantKind,
        entries: Sequence[Assignment],
    ) -> None:
        await self._clear_active_rosters(instance_id)
        if not entries:
            return
        await self.session.execute(
            insert(_ACTIVE[kind]),
            [
                {
                    "instance_id": instance_id,
                    "flow_node_id": task_id,
                    "member_id": entry.member,
                    "execution_order": entry.execution_order,
                }
                for entry in entries
            ],
        )

    async def find_active(
        self, instance_id: str, task_id: str, kind: ParticipantKind, member: str
    ) -> Assignment | None:
        model = _ACTIVE[kind]
        result = await self.session.execute(
            select(model.member_id, model.execution_order).where(
                model.instance_id == instance_id,
                model.flow_node_id == task_id,
                model.member_id == member,
            )
        )
        row = result.one_or_none()
        if row is None:
            return None
        return Assignment(row.member_id, row.execution_order)

    async def list_active(self, instance_id: str, kind: ParticipantKind) -> list[Assignment]:
        model = _ACTIVE[kind]
        result = await self.session.execute(
            select(model.member_id, model.execution_order)
            .where(model.instance_id == instance_id)
            .order_by(model.member_id, model.execution_order)
        )
        return [Assignment(row.member_id, row.execution_order) for row in result]

    async def delete_active(
        self, instance_id: str, task_id: str, kind: ParticipantKind, member: str
    ) -> None:
        model = _ACTIVE[kind]
        await self.session.execute(
            delete(model).where(
                model.instance_id == instance_id,
                model.flow_node_id == task_id,
                model.member_id == member,
            )
        )

    async def count_active(
        self,
        instance_id: str,
        kind: ParticipantKind,
        task_id: str | None = None,
        member: str | None = None,
    ) -> int:
        model = _ACTIVE[kind]
        query = select(func.count()).select_from(model).where(model.instance_id == instance_id)
        if task_id is not None:
            query = query.where(model.flow_node_id == task_id)
        if member is not None:
            query = query.where(model.member_id == member)
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def change_active(
        self, instance_id: str, task_id: str, kind: ParticipantKind, old: str, new: str
    ) -> None:
        model = _ACTIVE[kind]
        await self.session.execute(
            update(model)
            .where(
                model.instance_id == instance_id,
                model.flow_node_id == task_id,
                model.member_id == old,
            )
            .values({model.member_id: new})
        )


class SqlWorkflowStore(WorkflowStore):
    """Unit of work over an async session factory.

    Each unit of work is one session and one transaction: committed when
    the block exits normally, rolled back when it raises.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from procflow.storage import get_session_factory

            session_factory = get_session_factory()
        self._session_factory = session_factory

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[InstanceRepository]:
        async with self._session_factory() as session:
            async with session.begin():
                yield SqlInstanceRepository(session)
