"""Flow node behaviour and graph traversal.

Each flow node variant gets an entry in the dispatch tables below:

- ``_NEXT``: how the variant picks the id of the next node
- ``_ACTIVATE``: what landing on the variant persists

Only tasks and terminate events are ever landed on. Gateways (and
non-terminal events such as a boundary event being left) are walked
through without being persisted as active.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from procflow.definition.model import (
    BoundaryEvent,
    Event,
    FlowNode,
    Gateway,
    Task,
    WorkflowDefinition,
)
from procflow.engine.ports import Assignment, InstanceRepository, ParticipantKind
from procflow.exceptions import ConfigurationError, WorkflowStateError

logger = logging.getLogger(__name__)

Parameters = Mapping[str, Any]


# =============================================================================
# NEXT NODE RESOLUTION
# =============================================================================


def _single_flow_target(node: FlowNode, instance_id: str, parameters: Parameters) -> str | None:
    if len(node.outgoing) != 1:
        raise ConfigurationError(
            "There are multiple or empty sequence flows; exactly one is required. "
            f"instance id = [{instance_id}], flow node id = [{node.id}]",
            flow_node_id=node.id,
        )
    return node.outgoing[0].target_id


def _event_target(node: Event, instance_id: str, parameters: Parameters) -> str | None:
    if node.is_terminate:
        return None
    return _single_flow_target(node, instance_id, parameters)


def _gateway_target(node: Gateway, instance_id: str, parameters: Parameters) -> str | None:
    for flow in node.outgoing:
        if flow.can_proceed(instance_id, parameters):
            return flow.target_id
    raise ConfigurationError(
        "The sequence flow to proceed was not found. "
        f"instance id = [{instance_id}], gateway id = [{node.id}]",
        flow_node_id=node.id,
    )


_NEXT: dict[type[FlowNode], Callable[[Any, str, Parameters], str | None]] = {
    Task: _single_flow_target,
    Event: _event_target,
    Gateway: _gateway_target,
    BoundaryEvent: _single_flow_target,
}


def next_flow_node_id(node: FlowNode, instance_id: str, parameters: Parameters) -> str | None:
    """Id of the node following ``node``; None after a terminate event."""
    return _NEXT[type(node)](node, instance_id, parameters)


def is_landing_node(node: FlowNode) -> bool:
    """Whether traversal stops at ``node`` (a task or a terminate event)."""
    return isinstance(node, Task) or (isinstance(node, Event) and node.is_terminate)


# =============================================================================
# ACTIVATION
# =============================================================================


async def refresh_active_roster(
    repository: InstanceRepository,
    instance_id: str,
    task: Task,
    kind: ParticipantKind,
    roster: Sequence[Assignment],
) -> None:
    """Materialize the active roster of ``task`` from its assigned roster.

    Sequential tasks start with the first participant only; every other
    task activates the whole roster. An empty roster clears it.
    """
    entries = list(roster[:1]) if task.is_sequential else list(roster)
    await repository.replace_active(instance_id, task.id, kind, entries)


async def _activate_task(
    task: Task, repository: InstanceRepository, instance_id: str, parameters: Parameters
) -> None:
    await repository.replace_active_node(instance_id, task.id)
    # A task has either users or groups assigned, never both
    users = await repository.find_assigned(instance_id, task.id, ParticipantKind.USER)
    if users:
        await refresh_active_roster(repository, instance_id, task, ParticipantKind.USER, users)
        return
    groups = await repository.find_assigned(instance_id, task.id, ParticipantKind.GROUP)
    if groups:
        await refresh_active_roster(repository, instance_id, task, ParticipantKind.GROUP, groups)


async def _activate_event(
    event: Event, repository: InstanceRepository, instance_id: str, parameters: Parameters
) -> None:
    if event.is_terminate:
        await repository.delete_instance(instance_id)
        logger.info("Workflow instance %s reached terminate event %s", instance_id, event.id)


async def _no_activation(
    node: FlowNode, repository: InstanceRepository, instance_id: str, parameters: Parameters
) -> None:
    return None


_ACTIVATE: dict[type[FlowNode], Callable[[Any, InstanceRepository, str, Parameters], Awaitable[None]]] = {
    Task: _activate_task,
    Event: _activate_event,
    Gateway: _no_activation,
    BoundaryEvent: _no_activation,
}


async def activate(
    node: FlowNode, repository: InstanceRepository, instance_id: str, parameters: Parameters
) -> None:
    """Persist the effects of landing on ``node``."""
    await _ACTIVATE[type(node)](node, repository, instance_id, parameters)


# =============================================================================
# TRAVERSAL
# =============================================================================


async def proceed(
    definition: WorkflowDefinition,
    repository: InstanceRepository,
    instance_id: str,
    current: FlowNode,
    parameters: Parameters,
) -> FlowNode:
    """Walk from ``current`` to the next landing node and activate it.

    Returns:
        The task or terminate event that is now active

    Raises:
        ConfigurationError: On ambiguous/missing flows, a gateway with no
            accepting flow, or a cycle that never reaches a landing node
    """
    target_id = next_flow_node_id(current, instance_id, parameters)
    if target_id is None:
        raise WorkflowStateError(
            f"Flow node has no successor. flow node id = [{current.id}]",
            instance_id=instance_id,
        )
    candidate = definition.find_flow_node(target_id)

    steps = 0
    while not is_landing_node(candidate):
        steps += 1
        if steps > len(definition.flow_nodes):
            raise ConfigurationError(
                "Traversal did not reach a task or terminate event (cycle without tasks). "
                f"instance id = [{instance_id}], flow node id = [{candidate.id}]",
                workflow_id=definition.workflow_id,
                flow_node_id=candidate.id,
            )
        target_id = next_flow_node_id(candidate, instance_id, parameters)
        candidate = definition.find_flow_node(target_id)

    await activate(candidate, repository, instance_id, parameters)
    logger.debug("Workflow instance %s: %s -> %s", instance_id, current.id, candidate.id)
    return candidate


# =============================================================================
# TASK PROGRESSION
# =============================================================================


async def process_task(
    task: Task,
    repository: InstanceRepository,
    instance_id: str,
    kind: ParticipantKind,
    executor: str,
) -> bool:
    """Record that ``executor`` finished its part of ``task``.

    Returns:
        True if the task's completion condition is satisfied

    Raises:
        WorkflowStateError: If the executor has no active entry on the task
    """
    entry = await repository.find_active(instance_id, task.id, kind, executor)
    if entry is None:
        raise WorkflowStateError(
            f"Active task is not found for {kind} = [{executor}]. "
            f"instance id = [{instance_id}], task id = [{task.id}].",
            instance_id=instance_id,
            task_id=task.id,
            executor=executor,
        )
    await repository.delete_active(instance_id, task.id, kind, executor)

    if task.is_sequential:
        roster = await repository.find_assigned(instance_id, task.id, kind)
        following = next((a for a in roster if a.execution_order > entry.execution_order), None)
        if following is not None:
            await repository.replace_active(instance_id, task.id, kind, [following])

    return await task.effective_completion_condition.is_completed(
        repository, instance_id, task, kind
    )
