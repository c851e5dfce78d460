"""Workflow instance state tables.

One header row per running instance plus its rosters:

- ``instance_flow_node``: the tasks of the pinned definition snapshot
- ``task_assigned_user`` / ``task_assigned_group``: who may work a task
- ``active_flow_node``: the node the instance currently waits on
- ``active_user_task`` / ``active_group_task``: who is expected to act now

Roster entities expose the participant as ``member_id`` so the repository
can treat users and groups uniformly. Every child row references the
header with ``ON DELETE CASCADE``.
"""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from procflow.storage.models import Base, TimestampMixin

_INSTANCE_FK = "workflow_instance.instance_id"


class WorkflowInstanceEntity(Base, TimestampMixin):
    """Header of a running workflow instance.

    Attributes:
        instance_id: Zero-padded instance identifier
        workflow_id: Workflow id of the pinned definition
        version: Pinned definition version
    """

    __tablename__ = "workflow_instance"

    instance_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    workflow_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<WorkflowInstanceEntity(instance_id={self.instance_id!r}, "
            f"workflow_id={self.workflow_id!r}, version={self.version})>"
        )


class InstanceFlowNodeEntity(Base):
    __tablename__ = "instance_flow_node"

    instance_id: Mapped[str] = mapped_column(
        String(64), ForeignKey(_INSTANCE_FK, ondelete="CASCADE"), primary_key=True
    )
    flow_node_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    workflow_id: Mapped[str] = mapped_column(String(100), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)


class TaskAssignedUserEntity(Base):
    __tablename__ = "task_assigned_user"

    instance_id: Mapped[str] = mapped_column(
        String(64), ForeignKey(_INSTANCE_FK, ondelete="CASCADE"), primary_key=True
    )
    flow_node_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    member_id: Mapped[str] = mapped_column("assigned_user_id", String(100), primary_key=True)
    execution_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TaskAssignedGroupEntity(Base):
    __tablename__ = "task_assigned_group"

    instance_id: Mapped[str] = mapped_column(
        String(64), ForeignKey(_INSTANCE_FK, ondelete="CASCADE"), primary_key=True
    )
    flow_node_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    member_id: Mapped[str] = mapped_column("assigned_group_id", String(100), primary_key=True)
    execution_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ActiveFlowNodeEntity(Base):
    __tablename__ = "active_flow_node"

    instance_id: Mapped[str] = mapped_column(
        String(64), ForeignKey(_INSTANCE_FK, ondelete="CASCADE"), primary_key=True
    )
    flow_node_id: Mapped[str] = mapped_column(String(100), nullable=False)


class ActiveUserTaskEntity(Base):
    __tablename__ = "active_user_task"

    instance_id: Mapped[str] = mapped_column(
        String(64), ForeignKey(_INSTANCE_FK, ondelete="CASCADE"), primary_key=True
    )
    flow_node_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    member_id: Mapped[str] = mapped_column("assigned_user_id", String(100), primary_key=True)
    execution_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ActiveGroupTaskEntity(Base):
    __tablename__ = "active_group_task"

    instance_id: Mapped[str] = mapped_column(
        String(64), ForeignKey(_INSTANCE_FK, ondelete="CASCADE"), primary_key=True
    )
    flow_node_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    member_id: Mapped[str] = mapped_column("assigned_group_id", String(100), primary_key=True)
    execution_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
