from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from jobflow.infra.database import get_session
from jobflow.v1.core.exceptions import create_success_response
from jobflow.v1.jobs.models import Job, JobStatus

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class JobsHealth(BaseModel):
    """Job backlog as seen by the store."""

    by_status: dict[str, int]
    backlog: int = 0


@router.get("/healthz", response_model=dict)
async def health_check(request: Request, session: AsyncSession = Depends(get_session)):
    """Health check endpoint with database and job backlog status."""
    settings = request.app.state.settings
    timestamp = datetime.now(UTC).isoformat()

    db_health = await _check_database_health(session)

    jobs_health = None
    if db_health.connected:
        jobs_health = await _check_jobs_health(session)

    health_data = {
        "ok": db_health.connected,
        "version": settings.version,
        "environment": settings.environment,
        "queue_backend": settings.queue_backend.value,
        "timestamp": timestamp,
        "database": db_health.model_dump(),
        "jobs": jobs_health.model_dump() if jobs_health else None,
    }

    return create_success_response(data=health_data)


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))


async def _check_jobs_health(session: AsyncSession) -> JobsHealth:
    """Count jobs per status; backlog is everything not yet settled."""
    result = await session.execute(
        select(Job.status, func.count(Job.id)).group_by(Job.status)
    )
    by_status = {status.value: 0 for status in JobStatus}
    by_status.update(dict(result.all()))

    backlog = sum(
        by_status[status.value]
        for status in (JobStatus.PENDING, JobStatus.PROCESSING, JobStatus.CANCELLING)
    )

    return JobsHealth(by_status=by_status, backlog=backlog)
