"""Unit tests for the workflow graph model and the document builder."""

from datetime import date

import pytest

from procflow.conditions import (
    AllCompletionCondition,
    ConditionRegistry,
    FlowProceedCondition,
    OrCompletionCondition,
    SingleTaskCompletionCondition,
)
from procflow.definition import (
    BoundaryEvent,
    Event,
    EventType,
    Gateway,
    MultiInstanceType,
    SequenceFlow,
    Task,
    build_definition,
    parse_document,
)
from procflow.exceptions import ConfigurationError, FlowNodeNotFoundError, TaskNotFoundError
from tests.factories import (
    BoundaryEventFactory,
    EventFactory,
    LaneFactory,
    TaskFactory,
    WorkflowDocumentFactory,
    boundary_document,
    flows,
    gateway_document,
    multi_instance_document,
)


class TestTask:
    def test_single_task_uses_single_completion(self):
        task = Task(id="t1")
        assert not task.is_multi_instance
        assert isinstance(task.effective_completion_condition, SingleTaskCompletionCondition)

    def test_multi_instance_defaults_to_all(self):
        task = Task(id="t1", multi_instance_type=MultiInstanceType.PARALLEL)
        assert task.is_multi_instance
        assert not task.is_sequential
        assert isinstance(task.effective_completion_condition, AllCompletionCondition)

    def test_explicit_completion_condition(self):
        condition = OrCompletionCondition("1")
        task = Task(
            id="t1",
            multi_instance_type=MultiInstanceType.SEQUENTIAL,
            completion_condition=condition,
        )
        assert task.is_sequential
        assert task.effective_completion_condition is condition

    def test_single_task_rejects_completion_condition(self):
        with pytest.raises(ConfigurationError, match="Single task must not have a completion"):
            Task(id="t1", completion_condition=AllCompletionCondition())


class _Never(FlowProceedCondition):
    def is_match(self, instance_id, parameters, sequence_flow):
        return False


class TestSequenceFlow:
    def test_unconditional_flow_always_proceeds(self):
        flow = SequenceFlow(id="f1", source_id="a", target_id="b")
        assert flow.can_proceed("1", {}) is True

    def test_conditional_flow_delegates(self):
        flow = SequenceFlow(id="f1", source_id="a", target_id="b", condition=_Never())
        assert flow.can_proceed("1", {"x": 1}) is False


class TestBuildDefinition:
    def test_builds_gateway_graph(self):
        definition = build_definition(gateway_document())

        assert definition.workflow_id == "WF"
        assert definition.version == 1
        assert definition.effective_date == date(2024, 1, 1)
        assert definition.start_event.id == "start"
        assert [t.id for t in definition.tasks] == ["t1", "t2"]
        assert isinstance(definition.find_flow_node("g1"), Gateway)
        assert isinstance(definition.find_flow_node("end"), Event)
        assert str(definition) == "WF v1 (Test workflow)"

    def test_outgoing_flows_keep_document_order(self):
        definition = build_definition(gateway_document())
        gateway = definition.find_flow_node("g1")

        assert [f.target_id for f in gateway.outgoing] == ["t2", "end"]
        assert gateway.outgoing[0].condition_expression == "eq(p, 1)"
        assert gateway.outgoing[1].condition is None

    def test_multi_instance_task(self):
        definition = build_definition(multi_instance_document("PARALLEL", "or(2)"))
        task = definition.find_task("t1")

        assert task.multi_instance_type is MultiInstanceType.PARALLEL
        assert isinstance(task.completion_condition, OrCompletionCondition)
        assert task.completion_condition.threshold == 2

    def test_boundary_events(self):
        definition = build_definition(boundary_document())

        events = definition.find_boundary_events("cancel")

        assert len(events) == 1
        assert isinstance(events[0], BoundaryEvent)
        assert events[0].attached_task_id == "t1"
        assert definition.find_boundary_events("unknown") == []

    def test_tasks_in_lane(self):
        definition = build_definition(boundary_document())
        assert [t.id for t in definition.tasks_in_lane("l1")] == ["t1", "t2"]
        assert [t.id for t in definition.tasks_in_lane("l2")] == ["t9"]
        assert definition.tasks_in_lane("missing") == []

    def test_iso_effective_date(self):
        definition = build_definition(WorkflowDocumentFactory(effective_date="2024-03-15"))
        assert definition.effective_date == date(2024, 3, 15)

    def test_integer_effective_date(self):
        definition = build_definition(WorkflowDocumentFactory(effective_date=20240315))
        assert definition.effective_date == date(2024, 3, 15)

    def test_custom_condition_registry(self):
        registry = ConditionRegistry.with_defaults()
        registry.register_flow_condition("never", _Never)
        document = gateway_document(
            sequence_flows=flows(
                ("start", "t1"), ("t1", "g1"), ("g1", "t2", "never"), ("g1", "end"), ("t2", "end")
            )
        )

        definition = build_definition(document, registry)

        assert isinstance(definition.find_flow_node("g1").outgoing[0].condition, _Never)


class TestDefinitionValidation:
    def test_missing_start_event(self):
        document = WorkflowDocumentFactory(events=[EventFactory(id="end", type="TERMINATE")])
        with pytest.raises(ConfigurationError, match='"Start Event" is not defined'):
            build_definition(document)

    def test_multiple_start_events(self):
        document = WorkflowDocumentFactory(
            events=[EventFactory(id="s1"), EventFactory(id="s2"), EventFactory(id="end", type="TERMINATE")]
        )
        with pytest.raises(ConfigurationError, match='"Start Event" is multiply defined'):
            build_definition(document)

    def test_duplicate_flow_node_ids(self):
        document = WorkflowDocumentFactory(tasks=[TaskFactory(id="end")])
        with pytest.raises(ConfigurationError, match="Flow node id is duplicated") as exc_info:
            build_definition(document)
        assert exc_info.value.flow_node_id == "end"

    def test_dangling_flow_endpoint(self):
        document = WorkflowDocumentFactory(sequence_flows=flows(("start", "nowhere")))
        with pytest.raises(ConfigurationError, match="unknown flow node"):
            build_definition(document)

    def test_boundary_event_on_unknown_task(self):
        document = WorkflowDocumentFactory(
            boundary_events=[BoundaryEventFactory(id="b1", attached_task="ghost")]
        )
        with pytest.raises(ConfigurationError, match="attached to an unknown task"):
            build_definition(document)

    def test_single_task_with_completion_condition(self):
        document = WorkflowDocumentFactory(tasks=[TaskFactory(id="t1", completion_condition="all")])
        with pytest.raises(ConfigurationError, match="element id = \\[t1\\]"):
            build_definition(document)

    def test_unknown_completion_condition(self):
        with pytest.raises(ConfigurationError, match="Unknown completion condition"):
            build_definition(multi_instance_document("PARALLEL", "majority"))

    def test_unknown_flow_condition(self):
        document = gateway_document(
            sequence_flows=flows(("start", "t1"), ("t1", "g1"), ("g1", "t2", "between(p, 1, 2)"))
        )
        with pytest.raises(ConfigurationError, match="element id = \\[f3\\]"):
            build_definition(document)

    def test_unknown_enum_value(self):
        document = WorkflowDocumentFactory(tasks=[TaskFactory(id="t1", multi_instance="RANDOM")])
        with pytest.raises(ConfigurationError, match="Invalid workflow definition document"):
            build_definition(document)

    def test_unknown_field(self):
        document = WorkflowDocumentFactory(lanes=[{**LaneFactory(id="l1"), "colour": "red"}])
        with pytest.raises(ConfigurationError):
            parse_document(document)

    def test_version_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            parse_document(WorkflowDocumentFactory(version=0))


class TestLookups:
    def test_find_flow_node_not_found(self):
        definition = build_definition(gateway_document())
        with pytest.raises(FlowNodeNotFoundError):
            definition.find_flow_node("missing")

    def test_find_task_rejects_non_task(self):
        definition = build_definition(gateway_document())
        with pytest.raises(TaskNotFoundError):
            definition.find_task("g1")

    def test_start_event_type(self):
        definition = build_definition(gateway_document())
        assert definition.start_event.event_type is EventType.START
        assert definition.find_flow_node("end").is_terminate
