"""Workflow execution engine."""

from procflow.engine.ids import SequenceIdGenerator
from procflow.engine.instance import (
    CompletedWorkflowInstance,
    LiveWorkflowInstance,
    WorkflowInstance,
)
from procflow.engine.manager import WorkflowEngine
from procflow.engine.memory import InMemoryWorkflowStore
from procflow.engine.ports import (
    Assignment,
    IdGenerator,
    InstanceRecord,
    InstanceRepository,
    ParticipantKind,
    WorkflowStore,
)

__all__ = [
    "Assignment",
    "CompletedWorkflowInstance",
    "IdGenerator",
    "InMemoryWorkflowStore",
    "InstanceRecord",
    "InstanceRepository",
    "LiveWorkflowInstance",
    "ParticipantKind",
    "SequenceIdGenerator",
    "WorkflowEngine",
    "WorkflowInstance",
    "WorkflowStore",
]
