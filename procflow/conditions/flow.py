"""Built-in flow-proceed conditions.

All constructor arguments arrive as strings (they come straight from the
definition document); each condition parses what it needs.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from procflow.conditions.base import FlowProceedCondition

if TYPE_CHECKING:
    from procflow.definition.model import SequenceFlow


class NumberFlowProceedCondition(FlowProceedCondition):
    """Compares an integer parameter against an expected value.

    The parameter may be an int, a float (truncated) or a numeric string.
    Missing or non-numeric values never match.
    """

    comparison: Callable[[int, int], bool]
    symbol: str = "?"

    def __init__(self, param_key: str, expected_value: str):
        self.param_key = param_key
        self.expected_value = int(expected_value)

    def is_match(
        self,
        instance_id: str,
        parameters: Mapping[str, Any],
        sequence_flow: SequenceFlow,
    ) -> bool:
        value = _to_int(parameters.get(self.param_key)) if parameters else None
        if value is None:
            return False
        return type(self).comparison(value, self.expected_value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.param_key} {self.symbol} {self.expected_value})"


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


class EqFlowProceedCondition(NumberFlowProceedCondition):
    comparison = operator.eq
    symbol = "=="


class NeFlowProceedCondition(NumberFlowProceedCondition):
    comparison = operator.ne
    symbol = "!="


class GtFlowProceedCondition(NumberFlowProceedCondition):
    comparison = operator.gt
    symbol = ">"


class GeFlowProceedCondition(NumberFlowProceedCondition):
    comparison = operator.ge
    symbol = ">="


class LtFlowProceedCondition(NumberFlowProceedCondition):
    comparison = operator.lt
    symbol = "<"


class LeFlowProceedCondition(NumberFlowProceedCondition):
    comparison = operator.le
    symbol = "<="


class StringEqualFlowProceedCondition(FlowProceedCondition):
    """Matches when the parameter equals the expected string exactly."""

    def __init__(self, param_key: str, expected_value: str):
        self.param_key = param_key
        self.expected_value = expected_value

    def is_match(
        self,
        instance_id: str,
        parameters: Mapping[str, Any],
        sequence_flow: SequenceFlow,
    ) -> bool:
        return bool(parameters) and parameters.get(self.param_key) == self.expected_value


class StringNotEqualFlowProceedCondition(FlowProceedCondition):
    """Matches when the parameter is present and differs from the expected string."""

    def __init__(self, param_key: str, expected_value: str):
        self.param_key = param_key
        self.expected_value = expected_value

    def is_match(
        self,
        instance_id: str,
        parameters: Mapping[str, Any],
        sequence_flow: SequenceFlow,
    ) -> bool:
        if not parameters or self.param_key not in parameters:
            return False
        return parameters[self.param_key] != self.expected_value
