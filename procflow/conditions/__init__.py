"""Pluggable predicates for gateway routing and task completion."""

from procflow.conditions.base import CompletionCondition, FlowProceedCondition
from procflow.conditions.completion import (
    AllCompletionCondition,
    OrCompletionCondition,
    SingleTaskCompletionCondition,
)
from procflow.conditions.flow import (
    EqFlowProceedCondition,
    GeFlowProceedCondition,
    GtFlowProceedCondition,
    LeFlowProceedCondition,
    LtFlowProceedCondition,
    NeFlowProceedCondition,
    NumberFlowProceedCondition,
    StringEqualFlowProceedCondition,
    StringNotEqualFlowProceedCondition,
)
from procflow.conditions.registry import ConditionRegistry, parse_expression

__all__ = [
    "AllCompletionCondition",
    "CompletionCondition",
    "ConditionRegistry",
    "EqFlowProceedCondition",
    "FlowProceedCondition",
    "GeFlowProceedCondition",
    "GtFlowProceedCondition",
    "LeFlowProceedCondition",
    "LtFlowProceedCondition",
    "NeFlowProceedCondition",
    "NumberFlowProceedCondition",
    "OrCompletionCondition",
    "SingleTaskCompletionCondition",
    "StringEqualFlowProceedCondition",
    "StringNotEqualFlowProceedCondition",
    "parse_expression",
]
