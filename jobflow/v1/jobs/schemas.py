"""
Job API Pydantic schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class JobCreateRequest(BaseModel):
    """Schema for creating a new job.

    Fields default to empty so the service performs the validation and
    reports the offending field.
    """

    name: str = Field(default="", description="Display name")
    job_type: str = Field(default="", description="process, analyze or export")
    config: dict[str, Any] | None = Field(
        default=None, description="Opaque processor configuration"
    )


class JobResponse(BaseModel):
    """Schema for job API responses (camelCase keys)."""

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: UUID
    name: str
    job_type: str
    status: str
    config: dict[str, Any] | None = None
    error_message: str | None = None
    retry_count: int
    created_at: datetime
    updated_at: datetime


class JobListResponse(BaseModel):
    """Schema for job list API response."""

    jobs: list[JobResponse]
    total: int
    page: int
    limit: int


def serialize_job(job: Any) -> dict[str, Any]:
    return JobResponse.model_validate(job).model_dump(mode="json", by_alias=True)
