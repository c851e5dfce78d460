"""Builds immutable ``WorkflowDefinition`` snapshots from documents.

Condition expressions are resolved here, once, so an unknown strategy
name fails while loading rather than in the middle of a transition.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from procflow.conditions.registry import ConditionRegistry
from procflow.definition.model import (
    BoundaryEvent,
    Event,
    Gateway,
    Lane,
    SequenceFlow,
    Task,
    WorkflowDefinition,
)
from procflow.definition.schema import WorkflowDocument
from procflow.exceptions import ConfigurationError


def parse_document(data: Mapping[str, Any]) -> WorkflowDocument:
    """Validate a raw mapping (parsed YAML/JSON) as a workflow document.

    Raises:
        ConfigurationError: If the mapping does not match the schema
    """
    try:
        return WorkflowDocument.model_validate(data)
    except PydanticValidationError as e:
        workflow_id = data.get("workflow_id") if isinstance(data, Mapping) else None
        raise ConfigurationError(
            f"Invalid workflow definition document. workflow id = [{workflow_id}]: {e}",
            workflow_id=workflow_id,
        ) from e


def build_definition(
    document: WorkflowDocument | Mapping[str, Any],
    conditions: ConditionRegistry | None = None,
) -> WorkflowDefinition:
    """Build a definition snapshot from a document.

    Outgoing flows of each node keep document order, which is the order
    gateways evaluate them in.

    Args:
        document: Validated document or raw mapping
        conditions: Strategy registry (built-ins when omitted)

    Returns:
        Immutable WorkflowDefinition

    Raises:
        ConfigurationError: On schema errors, unknown condition strategies
            or broken graph invariants
    """
    if not isinstance(document, WorkflowDocument):
        document = parse_document(document)
    conditions = conditions or ConditionRegistry.with_defaults()

    def _wrap(exc: ConfigurationError, element_id: str) -> ConfigurationError:
        return ConfigurationError(
            f"{exc} workflow id = [{document.workflow_id}], version = [{document.version}], "
            f"element id = [{element_id}]",
            workflow_id=document.workflow_id,
            flow_node_id=element_id,
        )

    flows: list[SequenceFlow] = []
    for flow_doc in document.sequence_flows:
        try:
            condition = conditions.create_flow_condition(flow_doc.condition)
        except ConfigurationError as e:
            raise _wrap(e, flow_doc.id) from e
        flows.append(
            SequenceFlow(
                id=flow_doc.id,
                name=flow_doc.name,
                source_id=flow_doc.source,
                target_id=flow_doc.target,
                condition=condition,
                condition_expression=flow_doc.condition,
            )
        )

    outgoing: dict[str, list[SequenceFlow]] = defaultdict(list)
    for flow in flows:
        outgoing[flow.source_id].append(flow)

    def _outgoing(node_id: str) -> tuple[SequenceFlow, ...]:
        return tuple(outgoing.get(node_id, ()))

    tasks: list[Task] = []
    for task_doc in document.tasks:
        try:
            tasks.append(
                Task(
                    id=task_doc.id,
                    name=task_doc.name,
                    lane_id=task_doc.lane,
                    outgoing=_outgoing(task_doc.id),
                    multi_instance_type=task_doc.multi_instance,
                    completion_condition=conditions.create_completion_condition(
                        task_doc.completion_condition
                    ),
                )
            )
        except ConfigurationError as e:
            raise _wrap(e, task_doc.id) from e

    return WorkflowDefinition(
        workflow_id=document.workflow_id,
        version=document.version,
        name=document.name,
        effective_date=document.effective_date,
        lanes=tuple(Lane(id=lane.id, name=lane.name) for lane in document.lanes),
        sequence_flows=tuple(flows),
        tasks=tuple(tasks),
        gateways=tuple(
            Gateway(
                id=g.id,
                name=g.name,
                lane_id=g.lane,
                outgoing=_outgoing(g.id),
                gateway_type=g.type,
            )
            for g in document.gateways
        ),
        events=tuple(
            Event(
                id=e.id,
                name=e.name,
                lane_id=e.lane,
                outgoing=_outgoing(e.id),
                event_type=e.type,
            )
            for e in document.events
        ),
        boundary_events=tuple(
            BoundaryEvent(
                id=b.id,
                name=b.name,
                lane_id=b.lane,
                outgoing=_outgoing(b.id),
                trigger_id=b.trigger_id,
                trigger_name=b.trigger_name,
                attached_task_id=b.attached_task,
            )
            for b in document.boundary_events
        ),
    )
