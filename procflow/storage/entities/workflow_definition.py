"""Stored workflow definition documents.

Each row keeps one published definition document (workflow id + version)
as JSON so it can be rebuilt into a ``WorkflowDefinition`` at load time.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from procflow.storage.models import Base, JSONDocument, TimestampMixin


class WorkflowDefinitionEntity(Base, TimestampMixin):
    """Persistent storage for published workflow definitions."""

    __tablename__ = "workflow_definition"

    workflow_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        default="",
        server_default="",
    )
    effective_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    document: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict,
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowDefinitionEntity(workflow_id={self.workflow_id!r}, "
            f"version={self.version}, effective_date={self.effective_date})>"
        )
