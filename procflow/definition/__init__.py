"""Workflow graph model, documents, loaders and registry."""

from procflow.definition.builder import build_definition, parse_document
from procflow.definition.loader import (
    DefinitionLoader,
    StaticDefinitionLoader,
    YamlDefinitionLoader,
)
from procflow.definition.model import (
    BoundaryEvent,
    Event,
    EventType,
    FlowNode,
    Gateway,
    GatewayType,
    Lane,
    MultiInstanceType,
    SequenceFlow,
    Task,
    WorkflowDefinition,
)
from procflow.definition.registry import DefinitionRegistry
from procflow.definition.schema import WorkflowDocument

__all__ = [
    "BoundaryEvent",
    "DefinitionLoader",
    "DefinitionRegistry",
    "Event",
    "EventType",
    "FlowNode",
    "Gateway",
    "GatewayType",
    "Lane",
    "MultiInstanceType",
    "SequenceFlow",
    "StaticDefinitionLoader",
    "Task",
    "WorkflowDefinition",
    "WorkflowDocument",
    "YamlDefinitionLoader",
    "build_definition",
    "parse_document",
]
