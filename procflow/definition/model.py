"""Immutable workflow graph model.

A ``WorkflowDefinition`` is a snapshot of one workflow id + version. Flow
nodes are a closed set of variants (``Task``, ``Gateway``, ``Event``,
``BoundaryEvent``); their run-time behaviour lives in
``procflow.engine.traversal`` so the model stays pure data.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any

from procflow.conditions.base import CompletionCondition, FlowProceedCondition
from procflow.conditions.completion import AllCompletionCondition, SingleTaskCompletionCondition
from procflow.exceptions import ConfigurationError, FlowNodeNotFoundError, TaskNotFoundError

_SINGLE_TASK_COMPLETION = SingleTaskCompletionCondition()
_ALL_COMPLETION = AllCompletionCondition()


class MultiInstanceType(StrEnum):
    """How many participants work a task, and in which order."""

    NONE = "NONE"
    SEQUENTIAL = "SEQUENTIAL"
    PARALLEL = "PARALLEL"


class GatewayType(StrEnum):
    EXCLUSIVE = "EXCLUSIVE"


class EventType(StrEnum):
    START = "START"
    TERMINATE = "TERMINATE"


@dataclass(frozen=True)
class Lane:
    """Grouping label used for bulk assignment."""

    id: str
    name: str = ""


@dataclass(frozen=True, kw_only=True)
class SequenceFlow:
    """Directed, optionally conditioned edge between two flow nodes."""

    id: str
    name: str = ""
    source_id: str
    target_id: str
    condition: FlowProceedCondition | None = field(default=None, compare=False)
    condition_expression: str | None = None

    def can_proceed(self, instance_id: str, parameters: Mapping[str, Any]) -> bool:
        """Whether this flow may be taken (always True without a condition)."""
        if self.condition is None:
            return True
        return self.condition.is_match(instance_id, parameters, self)


@dataclass(frozen=True, kw_only=True)
class FlowNode:
    """Common attributes of every graph vertex."""

    id: str
    name: str = ""
    lane_id: str | None = None
    outgoing: tuple[SequenceFlow, ...] = ()


@dataclass(frozen=True, kw_only=True)
class Task(FlowNode):
    """A unit of work performed by assigned users or groups."""

    multi_instance_type: MultiInstanceType = MultiInstanceType.NONE
    completion_condition: CompletionCondition | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.is_multi_instance and self.completion_condition is not None:
            raise ConfigurationError(
                "Single task must not have a completion condition. "
                f"flow node id = [{self.id}], flow node name = [{self.name}]",
                flow_node_id=self.id,
            )

    @property
    def is_multi_instance(self) -> bool:
        return self.multi_instance_type is not MultiInstanceType.NONE

    @property
    def is_sequential(self) -> bool:
        return self.multi_instance_type is MultiInstanceType.SEQUENTIAL

    @property
    def effective_completion_condition(self) -> CompletionCondition:
        """The condition evaluated after each participant acts.

        Single tasks always complete; multi-instance tasks without an
        explicit condition wait for every participant.
        """
        if not self.is_multi_instance:
            return _SINGLE_TASK_COMPLETION
        return self.completion_condition or _ALL_COMPLETION


@dataclass(frozen=True, kw_only=True)
class Gateway(FlowNode):
    """Branching point; never persisted as the active node."""

    gateway_type: GatewayType = GatewayType.EXCLUSIVE


@dataclass(frozen=True, kw_only=True)
class Event(FlowNode):
    """Start or terminate event."""

    event_type: EventType

    @property
    def is_terminate(self) -> bool:
        return self.event_type is EventType.TERMINATE


@dataclass(frozen=True, kw_only=True)
class BoundaryEvent(FlowNode):
    """Externally triggered event that preempts the task it is attached to."""

    trigger_id: str
    trigger_name: str = ""
    attached_task_id: str


@dataclass(frozen=True, kw_only=True)
class WorkflowDefinition:
    """Immutable snapshot of one workflow id + version.

    Invariants checked on construction:
    - flow node ids are unique across all variants
    - exactly one START event
    - every sequence flow connects two existing nodes
    - every boundary event is attached to an existing task
    """

    workflow_id: str
    version: int
    name: str = ""
    effective_date: date
    lanes: tuple[Lane, ...] = ()
    sequence_flows: tuple[SequenceFlow, ...] = ()
    tasks: tuple[Task, ...] = ()
    gateways: tuple[Gateway, ...] = ()
    events: tuple[Event, ...] = ()
    boundary_events: tuple[BoundaryEvent, ...] = ()
    _nodes: dict[str, FlowNode] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        nodes: dict[str, FlowNode] = {}
        for node in (*self.tasks, *self.gateways, *self.events, *self.boundary_events):
            if node.id in nodes:
                raise self._config_error(
                    f"Flow node id is duplicated. flow node id = [{node.id}]", node.id
                )
            nodes[node.id] = node
        object.__setattr__(self, "_nodes", nodes)

        starts = [e for e in self.events if e.event_type is EventType.START]
        if not starts:
            raise self._config_error(
                '"Start Event" is not defined. "Start Event" must be a single definition.'
            )
        if len(starts) > 1:
            raise self._config_error(
                '"Start Event" is multiply defined. "Start Event" must be a single definition.'
            )

        for flow in self.sequence_flows:
            for endpoint in (flow.source_id, flow.target_id):
                if endpoint not in nodes:
                    raise self._config_error(
                        f"Sequence flow refers to an unknown flow node. "
                        f"sequence flow id = [{flow.id}], flow node id = [{endpoint}]",
                        endpoint,
                    )

        task_ids = {task.id for task in self.tasks}
        for event in self.boundary_events:
            if event.attached_task_id not in task_ids:
                raise self._config_error(
                    f"Boundary event is attached to an unknown task. "
                    f"boundary event id = [{event.id}], task id = [{event.attached_task_id}]",
                    event.id,
                )

    def _config_error(self, message: str, flow_node_id: str | None = None) -> ConfigurationError:
        return ConfigurationError(
            f"{message} workflow = [{self.workflow_id}({self.name})], version = [{self.version}]",
            workflow_id=self.workflow_id,
            flow_node_id=flow_node_id,
        )

    @property
    def start_event(self) -> Event:
        return next(e for e in self.events if e.event_type is EventType.START)

    @property
    def flow_nodes(self) -> list[FlowNode]:
        return list(self._nodes.values())

    def find_flow_node(self, flow_node_id: str) -> FlowNode:
        """Look up any flow node by id.

        Raises:
            FlowNodeNotFoundError: If no node has this id
        """
        node = self._nodes.get(flow_node_id)
        if node is None:
            raise FlowNodeNotFoundError(self.workflow_id, self.version, flow_node_id)
        return node

    def find_task(self, task_id: str) -> Task:
        """Look up a task by id.

        Raises:
            TaskNotFoundError: If no task has this id
        """
        node = self._nodes.get(task_id)
        if not isinstance(node, Task):
            raise TaskNotFoundError(self.workflow_id, self.version, task_id)
        return node

    def find_boundary_events(self, trigger_id: str) -> list[BoundaryEvent]:
        """All boundary events listening for ``trigger_id``."""
        return [e for e in self.boundary_events if e.trigger_id == trigger_id]

    def tasks_in_lane(self, lane_id: str) -> list[Task]:
        return [task for task in self.tasks if task.lane_id == lane_id]

    def __str__(self) -> str:
        return f"{self.workflow_id} v{self.version} ({self.name})"
