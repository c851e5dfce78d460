"""Condition strategy registry.

Maps strategy names to factories. Definitions reference strategies with
an expression of the form ``name`` or ``name(arg1, arg2)``; arguments are
always passed to the factory as strings, in order.

Usage:
    registry = ConditionRegistry.with_defaults()
    registry.register_flow_condition("approved", ApprovedCondition)
    condition = registry.create_flow_condition("eq(amount, 10)")
"""

from __future__ import annotations

import re
from collections.abc import Callable

from procflow.conditions.base import CompletionCondition, FlowProceedCondition
from procflow.conditions.completion import AllCompletionCondition, OrCompletionCondition
from procflow.conditions.flow import (
    EqFlowProceedCondition,
    GeFlowProceedCondition,
    GtFlowProceedCondition,
    LeFlowProceedCondition,
    LtFlowProceedCondition,
    NeFlowProceedCondition,
    StringEqualFlowProceedCondition,
    StringNotEqualFlowProceedCondition,
)
from procflow.exceptions import ConfigurationError

FlowConditionFactory = Callable[..., FlowProceedCondition]
CompletionConditionFactory = Callable[..., CompletionCondition]

_EXPRESSION_PATTERN = re.compile(r"^\s*([^()\s]+)\s*(?:\(([^()]*)\))?\s*$")

BUILTIN_FLOW_CONDITIONS: dict[str, FlowConditionFactory] = {
    "eq": EqFlowProceedCondition,
    "ne": NeFlowProceedCondition,
    "gt": GtFlowProceedCondition,
    "ge": GeFlowProceedCondition,
    "lt": LtFlowProceedCondition,
    "le": LeFlowProceedCondition,
    "string_equal": StringEqualFlowProceedCondition,
    "string_not_equal": StringNotEqualFlowProceedCondition,
}

BUILTIN_COMPLETION_CONDITIONS: dict[str, CompletionConditionFactory] = {
    "all": AllCompletionCondition,
    "or": OrCompletionCondition,
}


def parse_expression(expression: str) -> tuple[str, list[str]]:
    """Split ``name(arg1, arg2)`` into its name and stripped string arguments.

    Raises:
        ConfigurationError: If the expression is malformed
    """
    match = _EXPRESSION_PATTERN.match(expression)
    if match is None:
        raise ConfigurationError(f"Invalid condition expression. expression = [{expression}]")
    name, raw_args = match.group(1), match.group(2)
    if raw_args is None or not raw_args.strip():
        return name, []
    return name, [arg.strip() for arg in raw_args.split(",")]


class ConditionRegistry:
    """Resolves condition expressions to strategy instances."""

    def __init__(self) -> None:
        self._flow: dict[str, FlowConditionFactory] = {}
        self._completion: dict[str, CompletionConditionFactory] = {}

    @classmethod
    def with_defaults(cls) -> ConditionRegistry:
        """Create a registry pre-populated with the built-in strategies."""
        registry = cls()
        for name, factory in BUILTIN_FLOW_CONDITIONS.items():
            registry.register_flow_condition(name, factory)
        for name, factory in BUILTIN_COMPLETION_CONDITIONS.items():
            registry.register_completion_condition(name, factory)
        return registry

    def register_flow_condition(self, name: str, factory: FlowConditionFactory) -> None:
        """Register (or replace) a flow-proceed strategy."""
        self._flow[name] = factory

    def register_completion_condition(self, name: str, factory: CompletionConditionFactory) -> None:
        """Register (or replace) a completion strategy."""
        self._completion[name] = factory

    @property
    def flow_condition_names(self) -> list[str]:
        return sorted(self._flow)

    @property
    def completion_condition_names(self) -> list[str]:
        return sorted(self._completion)

    def create_flow_condition(self, expression: str | None) -> FlowProceedCondition | None:
        """Build the flow condition for ``expression`` (None when empty)."""
        return self._create(expression, self._flow, "flow proceed")

    def create_completion_condition(self, expression: str | None) -> CompletionCondition | None:
        """Build the completion condition for ``expression`` (None when empty)."""
        return self._create(expression, self._completion, "completion")

    @staticmethod
    def _create(expression, factories, family):
        if expression is None or not expression.strip():
            return None
        name, args = parse_expression(expression)
        factory = factories.get(name)
        if factory is None:
            available = ", ".join(sorted(factories))
            raise ConfigurationError(
                f"Unknown {family} condition [{name}]. expression = [{expression}], "
                f"available = [{available}]"
            )
        try:
            return factory(*args)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Failed to create {family} condition. expression = [{expression}]: {e}"
            ) from e
