"""create discovery_sessions table

Revision ID: b7d2e4f91a3c
Revises:
Create Date: 2026-10-12 14:05:41.118205

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "b7d2e4f91a3c"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "discovery_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("idea_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("current_phase", sa.String(length=20), nullable=False),
        sa.Column("messages", sa.JSON(), nullable=False),
        sa.Column("founder_fit", sa.JSON(), nullable=True),
        sa.Column("refined_prompt", sa.JSON(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_discovery_sessions")),
    )
    op.create_index(op.f("ix_discovery_sessions_owner_id"), "discovery_sessions", ["owner_id"], unique=False)
    op.create_index(op.f("ix_discovery_sessions_idea_id"), "discovery_sessions", ["idea_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f("ix_discovery_sessions_idea_id"), table_name="discovery_sessions")
    op.drop_index(op.f("ix_discovery_sessions_owner_id"), table_name="discovery_sessions")
    op.drop_table("discovery_sessions")
