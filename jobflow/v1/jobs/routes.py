"""
Job API endpoints.

Thin front door over the job services: request parsing, response envelopes,
and the error taxonomy mapped to HTTP status codes by the exception handlers.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status

from jobflow.infra.database import get_database
from jobflow.v1.core.exceptions import create_success_response
from jobflow.v1.jobs.repository import JobRepository
from jobflow.v1.jobs.schemas import JobCreateRequest, JobListResponse, JobResponse, serialize_job
from jobflow.v1.jobs.service import DEFAULT_PAGE_LIMIT, JobActionService, JobService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_job_repository(request: Request) -> JobRepository:
    return JobRepository(get_database(request))


def get_job_service(
    request: Request, repository: JobRepository = Depends(get_job_repository)
) -> JobService:
    return JobService(repository, request.app.state.queue, request.app.state.settings)


def get_job_action_service(
    request: Request, repository: JobRepository = Depends(get_job_repository)
) -> JobActionService:
    return JobActionService(
        repository, request.app.state.queue, request.app.state.settings
    )


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_job(
    job_request: JobCreateRequest,
    service: JobService = Depends(get_job_service),
) -> dict[str, Any]:
    """Create a job and queue it for processing."""
    job = await service.submit(job_request.name, job_request.job_type, job_request.config)
    return create_success_response(data=serialize_job(job))


@router.get("", response_model=dict)
async def list_jobs(
    page: int = Query(default=1, description="1-based page number"),
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, description="Page size, 1-100"),
    service: JobService = Depends(get_job_service),
) -> dict[str, Any]:
    """List jobs newest first."""
    jobs, total, page, limit = await service.list_jobs(page, limit)

    response_data = JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        page=page,
        limit=limit,
    )
    return create_success_response(
        data=response_data.model_dump(mode="json", by_alias=True)
    )


@router.get("/{job_id}", response_model=dict)
async def get_job(
    job_id: str,
    service: JobService = Depends(get_job_service),
) -> dict[str, Any]:
    """Get a specific job by ID."""
    job = await service.get_job(job_id)
    return create_success_response(data=serialize_job(job))


@router.post("/{job_id}/cancel", response_model=dict)
async def cancel_job(
    job_id: str,
    service: JobActionService = Depends(get_job_action_service),
) -> dict[str, Any]:
    """Request cancellation of a pending or processing job."""
    job = await service.cancel(job_id)

    logger.info("Job cancel requested via API", extra={"job_id": job_id})

    return create_success_response(data=serialize_job(job))


@router.post("/{job_id}/retry", response_model=dict)
async def retry_job(
    job_id: str,
    service: JobActionService = Depends(get_job_action_service),
) -> dict[str, Any]:
    """Retry a failed job."""
    job = await service.retry(job_id)

    logger.info("Job retried via API", extra={"job_id": job_id})

    return create_success_response(data=serialize_job(job))
