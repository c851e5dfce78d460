"""Database entity models.

All SQLAlchemy ORM models for procflow.
"""

# Instance state
from procflow.storage.entities.instance import (
    ActiveFlowNodeEntity,
    ActiveGroupTaskEntity,
    ActiveUserTaskEntity,
    InstanceFlowNodeEntity,
    TaskAssignedGroupEntity,
    TaskAssignedUserEntity,
    WorkflowInstanceEntity,
)

# Definitions
from procflow.storage.entities.workflow_definition import WorkflowDefinitionEntity

# Identifier sequences
from procflow.storage.entities.id_sequence import IdSequenceEntity

__all__ = [
    # Instance state
    "ActiveFlowNodeEntity",
    "ActiveGroupTaskEntity",
    "ActiveUserTaskEntity",
    "InstanceFlowNodeEntity",
    "TaskAssignedGroupEntity",
    "TaskAssignedUserEntity",
    "WorkflowInstanceEntity",
    # Definitions
    "WorkflowDefinitionEntity",
    # Identifier sequences
    "IdSequenceEntity",
]
