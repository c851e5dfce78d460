"""Declarative workflow definition documents.

Pydantic models describing a process graph as data. A document can be
written as YAML, stored as JSON in the database, and built into an
immutable ``WorkflowDefinition`` by ``procflow.definition.builder``.

Example (YAML):

    workflow_id: WF
    version: 1
    name: Expense claim
    effective_date: "20240101"
    lanes:
      - {id: l1, name: Applicant}
    events:
      - {id: start, lane: l1, type: START}
      - {id: end, lane: l1, type: TERMINATE}
    tasks:
      - {id: t1, name: Apply, lane: l1}
    sequence_flows:
      - {id: f1, source: start, target: t1}
      - {id: f2, source: t1, target: end}
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from procflow.definition.model import EventType, GatewayType, MultiInstanceType


class _Element(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class LaneDocument(_Element):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = ""


class _FlowNodeDocument(_Element):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = ""
    lane: str | None = Field(default=None, max_length=64)


class EventDocument(_FlowNodeDocument):
    type: EventType


class TaskDocument(_FlowNodeDocument):
    multi_instance: MultiInstanceType = MultiInstanceType.NONE
    completion_condition: str | None = Field(
        default=None,
        description="Completion strategy expression, e.g. 'all' or 'or(2)'",
    )


class GatewayDocument(_FlowNodeDocument):
    type: GatewayType = GatewayType.EXCLUSIVE


class BoundaryEventDocument(_FlowNodeDocument):
    trigger_id: str = Field(..., min_length=1, max_length=64)
    trigger_name: str = ""
    attached_task: str = Field(..., min_length=1, max_length=64)


class SequenceFlowDocument(_Element):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = ""
    source: str = Field(..., min_length=1, max_length=64)
    target: str = Field(..., min_length=1, max_length=64)
    condition: str | None = Field(
        default=None,
        description="Flow proceed strategy expression, e.g. 'eq(amount, 1)'",
    )


class WorkflowDocument(_Element):
    """Declarative description of one workflow version."""

    workflow_id: str = Field(..., min_length=1, max_length=64)
    version: int = Field(..., ge=1)
    name: str = Field(default="", max_length=200)
    effective_date: date

    lanes: list[LaneDocument] = Field(default_factory=list)
    events: list[EventDocument] = Field(..., min_length=1)
    tasks: list[TaskDocument] = Field(default_factory=list)
    gateways: list[GatewayDocument] = Field(default_factory=list)
    boundary_events: list[BoundaryEventDocument] = Field(default_factory=list)
    sequence_flows: list[SequenceFlowDocument] = Field(default_factory=list)

    @field_validator("effective_date", mode="before")
    @classmethod
    def _parse_compact_date(cls, value: Any) -> Any:
        """Accept ``YYYYMMDD`` in addition to ISO dates."""
        if isinstance(value, int):
            value = str(value)
        if isinstance(value, str) and len(value) == 8 and value.isdigit():
            return datetime.strptime(value, "%Y%m%d").date()
        return value
