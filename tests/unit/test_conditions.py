"""Unit tests for the built-in flow-proceed and completion conditions."""

import pytest

from procflow.conditions import (
    AllCompletionCondition,
    EqFlowProceedCondition,
    GeFlowProceedCondition,
    GtFlowProceedCondition,
    LeFlowProceedCondition,
    LtFlowProceedCondition,
    NeFlowProceedCondition,
    OrCompletionCondition,
    SingleTaskCompletionCondition,
    StringEqualFlowProceedCondition,
    StringNotEqualFlowProceedCondition,
)
from procflow.definition.model import MultiInstanceType, SequenceFlow, Task
from procflow.engine.memory import InMemoryInstanceRepository, _State
from procflow.engine.ports import Assignment, ParticipantKind

FLOW = SequenceFlow(id="f1", source_id="g1", target_id="t1")
USER = ParticipantKind.USER


class TestNumberFlowProceedConditions:
    """Integer comparisons against a process parameter."""

    @pytest.mark.parametrize(
        ("condition_cls", "value", "expected"),
        [
            (EqFlowProceedCondition, 10, True),
            (EqFlowProceedCondition, 11, False),
            (NeFlowProceedCondition, 11, True),
            (NeFlowProceedCondition, 10, False),
            (GtFlowProceedCondition, 11, True),
            (GtFlowProceedCondition, 10, False),
            (GeFlowProceedCondition, 10, True),
            (GeFlowProceedCondition, 9, False),
            (LtFlowProceedCondition, 9, True),
            (LtFlowProceedCondition, 10, False),
            (LeFlowProceedCondition, 10, True),
            (LeFlowProceedCondition, 11, False),
        ],
    )
    def test_comparison(self, condition_cls, value, expected):
        condition = condition_cls("amount", "10")
        assert condition.is_match("0000000001", {"amount": value}, FLOW) is expected

    def test_numeric_string_parameter(self):
        condition = EqFlowProceedCondition("amount", "10")
        assert condition.is_match("1", {"amount": "10"}, FLOW) is True

    def test_float_parameter_is_truncated(self):
        condition = EqFlowProceedCondition("amount", "10")
        assert condition.is_match("1", {"amount": 10.9}, FLOW) is True

    def test_missing_parameter_never_matches(self):
        assert NeFlowProceedCondition("amount", "10").is_match("1", {}, FLOW) is False

    def test_non_numeric_parameter_never_matches(self):
        assert NeFlowProceedCondition("amount", "10").is_match("1", {"amount": "abc"}, FLOW) is False

    def test_boolean_parameter_never_matches(self):
        assert EqFlowProceedCondition("flag", "1").is_match("1", {"flag": True}, FLOW) is False

    def test_non_numeric_expected_value_rejected(self):
        with pytest.raises(ValueError):
            EqFlowProceedCondition("amount", "ten")

    def test_repr(self):
        assert repr(GeFlowProceedCondition("amount", "5")) == "GeFlowProceedCondition(amount >= 5)"


class TestStringFlowProceedConditions:
    def test_string_equal(self):
        condition = StringEqualFlowProceedCondition("status", "ok")
        assert condition.is_match("1", {"status": "ok"}, FLOW) is True
        assert condition.is_match("1", {"status": "ng"}, FLOW) is False
        assert condition.is_match("1", {}, FLOW) is False

    def test_string_equal_does_not_coerce(self):
        condition = StringEqualFlowProceedCondition("code", "1")
        assert condition.is_match("1", {"code": 1}, FLOW) is False

    def test_string_not_equal(self):
        condition = StringNotEqualFlowProceedCondition("status", "ok")
        assert condition.is_match("1", {"status": "ng"}, FLOW) is True
        assert condition.is_match("1", {"status": "ok"}, FLOW) is False

    def test_string_not_equal_requires_key(self):
        condition = StringNotEqualFlowProceedCondition("status", "ok")
        assert condition.is_match("1", {"other": "x"}, FLOW) is False


@pytest.fixture
def repository():
    return InMemoryInstanceRepository(_State())


@pytest.fixture
def parallel_task():
    return Task(id="t1", multi_instance_type=MultiInstanceType.PARALLEL)


async def _roster(repository, assigned, active):
    await repository.replace_assigned("1", "t1", USER, assigned, sequential=False)
    await repository.replace_active("1", "t1", USER, [Assignment(m) for m in active])


class TestCompletionConditions:
    @pytest.mark.asyncio
    async def test_single_task_always_completes(self, repository, parallel_task):
        assert await SingleTaskCompletionCondition().is_completed(
            repository, "1", parallel_task, USER
        )

    @pytest.mark.asyncio
    async def test_all_waits_for_empty_active_roster(self, repository, parallel_task):
        condition = AllCompletionCondition()
        await _roster(repository, ["a", "b"], ["b"])
        assert await condition.is_completed(repository, "1", parallel_task, USER) is False

        await _roster(repository, ["a", "b"], [])
        assert await condition.is_completed(repository, "1", parallel_task, USER) is True

    @pytest.mark.asyncio
    async def test_or_threshold_reached(self, repository, parallel_task):
        condition = OrCompletionCondition("2")
        await _roster(repository, ["a", "b", "c"], ["c"])
        assert await condition.is_completed(repository, "1", parallel_task, USER) is True

    @pytest.mark.asyncio
    async def test_or_threshold_not_reached(self, repository, parallel_task):
        condition = OrCompletionCondition("2")
        await _roster(repository, ["a", "b", "c"], ["b", "c"])
        assert await condition.is_completed(repository, "1", parallel_task, USER) is False

    @pytest.mark.asyncio
    async def test_or_completes_when_nobody_is_left(self, repository, parallel_task):
        condition = OrCompletionCondition("5")
        await _roster(repository, ["a", "b"], [])
        assert await condition.is_completed(repository, "1", parallel_task, USER) is True

    @pytest.mark.parametrize("threshold", ["0", "-1"])
    def test_or_rejects_non_positive_threshold(self, threshold):
        with pytest.raises(ValueError, match="positive"):
            OrCompletionCondition(threshold)

    def test_or_rejects_non_numeric_threshold(self):
        with pytest.raises(ValueError):
            OrCompletionCondition("many")
