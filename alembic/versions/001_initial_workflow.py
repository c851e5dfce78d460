"""Initial schema: workflow instances, rosters, definitions and id sequences.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# Roster tables: (table name, member column)
_ROSTER_TABLES = (
    ("task_assigned_user", "assigned_user_id"),
    ("task_assigned_group", "assigned_group_id"),
    ("active_user_task", "assigned_user_id"),
    ("active_group_task", "assigned_group_id"),
)


def _instance_fk(table: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        ["instance_id"],
        ["workflow_instance.instance_id"],
        name=op.f(f"fk_{table}_instance_id_workflow_instance"),
        ondelete="CASCADE",
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create instance state, definition and id sequence tables."""
    op.create_table(
        "workflow_instance",
        sa.Column("instance_id", sa.String(64), nullable=False),
        sa.Column("workflow_id", sa.String(100), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("instance_id", name=op.f("pk_workflow_instance")),
    )
    op.create_index(
        op.f("ix_workflow_instance_workflow_id"), "workflow_instance", ["workflow_id"]
    )

    op.create_table(
        "instance_flow_node",
        sa.Column("instance_id", sa.String(64), nullable=False),
        sa.Column("flow_node_id", sa.String(100), nullable=False),
        sa.Column("workflow_id", sa.String(100), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        _instance_fk("instance_flow_node"),
        sa.PrimaryKeyConstraint("instance_id", "flow_node_id", name=op.f("pk_instance_flow_node")),
    )

    op.create_table(
        "active_flow_node",
        sa.Column("instance_id", sa.String(64), nullable=False),
        sa.Column("flow_node_id", sa.String(100), nullable=False),
        _instance_fk("active_flow_node"),
        sa.PrimaryKeyConstraint("instance_id", name=op.f("pk_active_flow_node")),
    )

    for table, member_column in _ROSTER_TABLES:
        op.create_table(
            table,
            sa.Column("instance_id", sa.String(64), nullable=False),
            sa.Column("flow_node_id", sa.String(100), nullable=False),
            sa.Column(member_column, sa.String(100), nullable=False),
            sa.Column("execution_order", sa.Integer(), nullable=False),
            _instance_fk(table),
            sa.PrimaryKeyConstraint(
                "instance_id", "flow_node_id", member_column, name=op.f(f"pk_{table}")
            ),
        )

    op.create_table(
        "workflow_definition",
        sa.Column("workflow_id", sa.String(100), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False, server_default=""),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column(
            "document",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("workflow_id", "version", name=op.f("pk_workflow_definition")),
    )
    op.create_index(
        op.f("ix_workflow_definition_effective_date"), "workflow_definition", ["effective_date"]
    )

    op.create_table(
        "id_sequence",
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("category", name=op.f("pk_id_sequence")),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("id_sequence")
    op.drop_index(op.f("ix_workflow_definition_effective_date"), table_name="workflow_definition")
    op.drop_table("workflow_definition")
    for table, _ in reversed(_ROSTER_TABLES):
        op.drop_table(table)
    op.drop_table("active_flow_node")
    op.drop_table("instance_flow_node")
    op.drop_index(op.f("ix_workflow_instance_workflow_id"), table_name="workflow_instance")
    op.drop_table("workflow_instance")
