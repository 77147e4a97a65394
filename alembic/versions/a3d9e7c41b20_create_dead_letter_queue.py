"""
Create dead letter queue table

Revision ID: a3d9e7c41b20
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a3d9e7c41b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create dead_letter_queue table"""
    op.create_table(
        "dead_letter_queue",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("source_queue", sa.String(length=255), nullable=False),
        sa.Column("original_id", sa.String(length=255), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_stack", sa.Text(), nullable=True),
        sa.Column("error_code", sa.String(length=100), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(length=255), nullable=True),
        sa.Column("resolution_type", sa.String(length=20), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.CheckConstraint("attempts >= 0", name="ck_dlq_attempts_positive"),
        sa.CheckConstraint(
            "resolution_type IS NULL OR resolution_type IN ('reprocessed', 'ignored', 'fixed')",
            name="ck_dlq_resolution_type",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Pending lookups filter by source and order by age
    op.create_index(
        "ix_dead_letter_queue_pending",
        "dead_letter_queue",
        ["source_queue", "resolved_at", "created_at"],
    )
    op.create_index(
        "ix_dead_letter_queue_created_at", "dead_letter_queue", ["created_at"]
    )


def downgrade() -> None:
    """Drop dead_letter_queue table"""
    op.drop_index("ix_dead_letter_queue_created_at", table_name="dead_letter_queue")
    op.drop_index("ix_dead_letter_queue_pending", table_name="dead_letter_queue")
    op.drop_table("dead_letter_queue")
