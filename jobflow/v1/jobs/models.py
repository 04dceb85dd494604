"""
Job record model and status/type enumerations.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, TIMESTAMP, CheckConstraint, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from jobflow.infra.database import Base

MAX_RETRIES = 3


class JobStatus(str, Enum):
    """Job status enumeration."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"


class JobType(str, Enum):
    """Closed set of job kinds accepted at creation."""

    PROCESS = "process"
    ANALYZE = "analyze"
    EXPORT = "export"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class Job(Base):
    """
    A unit of asynchronous work with a lifecycle status.

    Only ``status``, ``error_message``, ``retry_count`` and ``updated_at``
    change after creation, and status changes go through
    ``JobRepository.conditional_update_status``.
    """

    __tablename__ = "jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False, comment="Display name")
    job_type: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Job type: process|analyze|export"
    )
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.PENDING.value,
        comment="Job status: pending|processing|completed|failed|cancelling|cancelled",
    )
    config: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, comment="Opaque processor configuration"
    )
    error_message: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Set when the job fails"
    )
    retry_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="User retries so far"
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', "
            "'cancelling', 'cancelled')",
            name="jobs_status_check",
        ),
        CheckConstraint(
            "job_type IN ('process', 'analyze', 'export')", name="jobs_job_type_check"
        ),
        CheckConstraint(
            f"retry_count BETWEEN 0 AND {MAX_RETRIES}", name="jobs_retry_count_check"
        ),
        Index("ix_jobs_created_at", "created_at"),
        Index("ix_jobs_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Job id={self.id} status={self.status} retry_count={self.retry_count}>"
