"""
Queue message payloads exchanged between the services and the consumers.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from jobflow.v1.jobs.models import Job


class WorkMessage(BaseModel):
    """Work topic message: a job that should be processed."""

    job_id: str
    name: str
    job_type: str
    config: dict[str, Any] | None = None
    created_at: datetime

    @classmethod
    def from_job(cls, job: Job) -> "WorkMessage":
        return cls(
            job_id=str(job.id),
            name=job.name,
            job_type=job.job_type,
            config=job.config,
            created_at=job.created_at,
        )


class CancellationMessage(BaseModel):
    """Cancellation topic message."""

    job_id: str
    cancelled_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DeadLetterMessage(BaseModel):
    """Dead-letter topic message recording a failed job."""

    job_id: str
    failed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    error_message: str
    retry_count: int


def encode(message: BaseModel) -> dict[str, Any]:
    """JSON-ready payload for a queue message."""
    return message.model_dump(mode="json", exclude_none=True)
