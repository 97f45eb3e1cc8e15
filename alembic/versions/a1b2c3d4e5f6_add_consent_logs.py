"""add consent_logs table

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "consent_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("region", sa.String(10), nullable=False),
        sa.Column("categories", sa.JSON(), nullable=False),
        sa.Column("purposes", sa.JSON(), nullable=True),
        sa.Column("banner_version", sa.String(50), nullable=False, server_default="1.0.0"),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source", sa.String(50), nullable=False, server_default="banner"),
        sa.Column("ip_hash", sa.String(64), nullable=True),
        sa.Column("user_agent_hash", sa.String(64), nullable=True),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )
    op.create_index("ix_consent_logs_id", "consent_logs", ["id"])
    op.create_index("ix_consent_logs_user_id", "consent_logs", ["user_id"])
    op.create_index("ix_consent_logs_region", "consent_logs", ["region"])
    op.create_index("ix_consent_logs_timestamp", "consent_logs", ["timestamp"])
    op.create_index("ix_consent_logs_withdrawn_at", "consent_logs", ["withdrawn_at"])
    op.create_index(
        "idx_consent_logs_session_active",
        "consent_logs",
        ["session_id", "withdrawn_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_consent_logs_session_active", table_name="consent_logs")
    op.drop_index("ix_consent_logs_withdrawn_at", table_name="consent_logs")
    op.drop_index("ix_consent_logs_timestamp", table_name="consent_logs")
    op.drop_index("ix_consent_logs_region", table_name="consent_logs")
    op.drop_index("ix_consent_logs_user_id", table_name="consent_logs")
    op.drop_index("ix_consent_logs_id", table_name="consent_logs")
    op.drop_table("consent_logs")
