"""create jobs table

Revision ID: 3a7c1e9d2b40
Revises:
Create Date: 2026-10-19 09:12:44.318207

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3a7c1e9d2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "jobs",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text, nullable=False, comment="Display name"),
        sa.Column(
            "job_type",
            sa.Text,
            nullable=False,
            comment="Job type: process|analyze|export",
        ),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="pending",
            comment="Job status: pending|processing|completed|failed|cancelling|cancelled",
        ),
        sa.Column(
            "config", sa.JSON, nullable=True, comment="Opaque processor configuration"
        ),
        sa.Column(
            "error_message", sa.Text, nullable=True, comment="Set when the job fails"
        ),
        sa.Column(
            "retry_count",
            sa.Integer,
            nullable=False,
            server_default="0",
            comment="User retries so far",
        ),
        # Timestamps
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        # Constraints
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', "
            "'cancelling', 'cancelled')",
            name="jobs_status_check",
        ),
        sa.CheckConstraint(
            "job_type IN ('process', 'analyze', 'export')", name="jobs_job_type_check"
        ),
        sa.CheckConstraint(
            "retry_count BETWEEN 0 AND 3", name="jobs_retry_count_check"
        ),
    )

    # List ordering and health counts
    op.create_index("ix_jobs_created_at", "jobs", ["created_at"])
    op.create_index("ix_jobs_status", "jobs", ["status"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_jobs_status", table_name="jobs")
    op.drop_index("ix_jobs_created_at", table_name="jobs")
    op.drop_table("jobs")
