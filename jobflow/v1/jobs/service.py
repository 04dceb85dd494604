"""
Job services: ingestion, reads, and the user-facing cancel/retry actions.
"""

import logging
from uuid import UUID

from pydantic import BaseModel

from jobflow.config.settings import Settings
from jobflow.infra.queue import MessageQueue
from jobflow.v1.core.exceptions import (
    InvalidJobStateError,
    JobNotFoundError,
    QueueError,
    ValidationError,
)
from jobflow.v1.jobs.messages import CancellationMessage, WorkMessage, encode
from jobflow.v1.jobs.models import Job, JobStatus, JobType
from jobflow.v1.jobs.repository import JobRepository
from jobflow.v1.jobs.state_machine import JobEvent, can_transition, expected_statuses

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100


class _PublishingService:
    """Shared wiring for services that write to the store and the queue."""

    def __init__(
        self, repository: JobRepository, queue: MessageQueue, settings: Settings
    ):
        self.repository = repository
        self.queue = queue
        self.settings = settings

    async def _publish(self, topic: str, message: BaseModel, job_id: UUID) -> bool:
        """
        Publish after a store write has already succeeded.

        The store is the source of truth, so a failed publish is logged and
        not rolled back. Returns whether the publish went through.
        """
        try:
            await self.queue.publish(topic, encode(message), key=str(job_id))
        except QueueError as e:
            logger.warning(
                "Failed to publish job message",
                extra={"job_id": str(job_id), "topic": topic, "error": str(e)},
            )
            return False
        return True

    async def _get_or_raise(self, job_id: UUID | str) -> Job:
        job = await self.repository.get_by_id(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job


class JobService(_PublishingService):
    """Creates jobs and hands them to the workers."""

    async def submit(
        self, name: str, job_type: str, config: dict | None = None
    ) -> Job:
        """
        Validate and persist a new job, then publish it to the work topic.

        Args:
            name: Display name, must not be blank
            job_type: One of process, analyze, export
            config: Opaque mapping passed to the processor unchanged

        Returns:
            The stored job in status pending

        Raises:
            ValidationError: name is blank or job_type is unknown
        """
        if not name or not name.strip():
            raise ValidationError("name", "job name is required")

        if job_type not in JobType.values():
            raise ValidationError(
                "job_type",
                f"invalid job type '{job_type}', must be one of: "
                f"{', '.join(JobType.values())}",
            )

        job = Job(
            name=name,
            job_type=job_type,
            status=JobStatus.PENDING.value,
            config=config,
            retry_count=0,
        )
        await self.repository.create(job)

        logger.info(
            "Job created",
            extra={"job_id": str(job.id), "job_type": job.job_type, "job_name": job.name},
        )

        # A job that misses its publish stays pending in the store
        await self._publish(self.settings.work_topic, WorkMessage.from_job(job), job.id)

        return job

    async def get_job(self, job_id: UUID | str) -> Job:
        """Get a job by ID, raising JobNotFoundError when absent."""
        return await self._get_or_raise(job_id)

    async def list_jobs(self, page: int = 1, limit: int = DEFAULT_PAGE_LIMIT):
        """List jobs newest first. Out-of-range paging falls back to defaults."""
        if page < 1:
            page = 1
        if limit < 1 or limit > MAX_PAGE_LIMIT:
            limit = DEFAULT_PAGE_LIMIT

        jobs, total = await self.repository.list(page, limit)
        return jobs, total, page, limit


class JobActionService(_PublishingService):
    """Cancel and retry requests made by users."""

    async def cancel(self, job_id: UUID | str) -> Job:
        """
        Request cancellation of a pending or processing job.

        The job moves to ``cancelling`` here and becomes ``cancelled`` once
        the cancellation consumer handles the published message.

        Raises:
            JobNotFoundError: no such job
            InvalidJobStateError: the job is not pending or processing
        """
        job = await self._get_or_raise(job_id)
        transition = can_transition(job.status, JobEvent.USER_CANCEL_REQUEST)

        modified = await self.repository.conditional_update_status(
            job.id,
            expected_statuses(JobEvent.USER_CANCEL_REQUEST),
            transition.target,
        )
        if modified == 0:
            raise InvalidJobStateError(
                "job status changed before it could be cancelled",
                {"job_id": str(job.id)},
            )

        logger.info("Job cancellation requested", extra={"job_id": str(job.id)})

        await self._publish(
            self.settings.cancellation_topic,
            CancellationMessage(job_id=str(job.id)),
            job.id,
        )

        return await self._get_or_raise(job.id)

    async def retry(self, job_id: UUID | str) -> Job:
        """
        Send a failed job back to the workers.

        Raises:
            JobNotFoundError: no such job
            InvalidJobStateError: the job is not failed
            MaxRetriesReachedError: the job was already retried three times
        """
        job = await self._get_or_raise(job_id)
        can_transition(job.status, JobEvent.USER_RETRY, job.retry_count)

        # Guarding on the retry count read keeps concurrent retries from
        # incrementing twice
        modified = await self.repository.conditional_update_status(
            job.id,
            expected_statuses(JobEvent.USER_RETRY),
            JobStatus.PENDING,
            expected_retry_count=job.retry_count,
            retry_count=job.retry_count + 1,
        )
        if modified == 0:
            raise InvalidJobStateError(
                "job status changed before it could be retried",
                {"job_id": str(job.id)},
            )

        updated = await self._get_or_raise(job.id)

        logger.info(
            "Job retried",
            extra={"job_id": str(job.id), "retry_count": updated.retry_count},
        )

        await self._publish(
            self.settings.work_topic, WorkMessage.from_job(updated), updated.id
        )

        return updated
