"""
Durable job storage with status-guarded updates.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import desc, func, select, update

from jobflow.infra.database import Database
from jobflow.v1.jobs.models import Job, JobStatus

logger = logging.getLogger(__name__)

# Columns a guarded update may touch besides status/updated_at
_MUTABLE_FIELDS = frozenset({"error_message", "retry_count"})


def parse_job_id(job_id: UUID | str) -> UUID | None:
    """Coerce a job id to a UUID, returning None when it is malformed."""
    if isinstance(job_id, UUID):
        return job_id
    try:
        return UUID(str(job_id))
    except ValueError:
        return None


class JobRepository:
    """Data access for job records."""

    def __init__(self, database: Database):
        self.database = database

    async def create(self, job: Job) -> UUID:
        """Insert a new job and return its id."""
        now = datetime.now(UTC)
        job.created_at = job.created_at or now
        job.updated_at = job.updated_at or job.created_at

        async with self.database.session() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)

        return job.id

    async def get_by_id(self, job_id: UUID | str) -> Job | None:
        """Get job by ID, or None when absent or the id is malformed."""
        parsed_id = parse_job_id(job_id)
        if parsed_id is None:
            return None

        async with self.database.session() as session:
            result = await session.execute(select(Job).where(Job.id == parsed_id))
            return result.scalar_one_or_none()

    async def list(self, page: int, limit: int) -> tuple[list[Job], int]:
        """List jobs newest first. ``page`` is 1-based."""
        offset = (page - 1) * limit

        async with self.database.session() as session:
            total_result = await session.execute(select(func.count(Job.id)))
            total = total_result.scalar() or 0

            jobs_result = await session.execute(
                select(Job).order_by(desc(Job.created_at)).offset(offset).limit(limit)
            )
            jobs = list(jobs_result.scalars().all())

        return jobs, total

    async def conditional_update_status(
        self,
        job_id: UUID | str,
        expected_statuses: Iterable[JobStatus],
        new_status: JobStatus,
        *,
        expected_retry_count: int | None = None,
        **fields: Any,
    ) -> int:
        """
        Move a job to ``new_status`` only if its status at write time is one
        of ``expected_statuses``.

        The guard is part of the UPDATE statement itself, so a concurrent
        writer that changed the status first makes this call a no-op.

        Args:
            job_id: Job to update
            expected_statuses: Statuses the row must hold when written
            new_status: Status to write
            expected_retry_count: Additionally require this retry count
            **fields: Extra columns to set (error_message, retry_count)

        Returns:
            Number of rows modified, 0 or 1
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        parsed_id = parse_job_id(job_id)
        if parsed_id is None:
            return 0

        expected_values = [JobStatus(status).value for status in expected_statuses]
        conditions = [Job.id == parsed_id, Job.status.in_(expected_values)]
        if expected_retry_count is not None:
            conditions.append(Job.retry_count == expected_retry_count)

        query = (
            update(Job)
            .where(*conditions)
            .values(status=new_status.value, updated_at=datetime.now(UTC), **fields)
            .execution_options(synchronize_session=False)
        )

        async with self.database.session() as session:
            result = await session.execute(query)
            await session.commit()

        modified = result.rowcount or 0
        logger.debug(
            "Guarded status update",
            extra={
                "job_id": str(parsed_id),
                "expected": expected_values,
                "new_status": new_status.value,
                "modified": modified,
            },
        )
        return modified

