"""
Work topic consumer: claims jobs, runs them, and records the outcome.
"""

import asyncio
import logging
from enum import Enum

from pydantic import ValidationError as MessageValidationError

from jobflow.config.settings import Settings
from jobflow.infra.queue import MessageQueue
from jobflow.v1.core.exceptions import QueueError
from jobflow.v1.core.registries import ProcessorRegistry
from jobflow.v1.jobs.consumer import ConsumerLoop
from jobflow.v1.jobs.messages import DeadLetterMessage, WorkMessage, encode
from jobflow.v1.jobs.models import JobStatus
from jobflow.v1.jobs.repository import JobRepository
from jobflow.v1.jobs.state_machine import JobEvent, expected_statuses, target_status

logger = logging.getLogger(__name__)

_CANCELLATION_STATUSES = (JobStatus.CANCELLING.value, JobStatus.CANCELLED.value)


class WorkOutcome(str, Enum):
    """What handling one work message amounted to."""

    COMPLETED = "completed"
    FAILED = "failed"
    # A cancellation got there first; the cancellation path owns the job
    CANCELLED = "cancelled"
    # The job was not pending: duplicate delivery, or cancelled before claim
    SKIPPED = "skipped"
    # Payload could not be decoded
    DROPPED = "dropped"
    # Shutdown arrived mid-execution; the job stays processing
    ABANDONED = "abandoned"
    # Shutdown was already under way; the job was left pending
    NOT_CLAIMED = "not_claimed"


class WorkConsumer(ConsumerLoop):
    """
    Worker pipeline for the work topic.

    Features:
    - Guarded claim so redelivered messages are absorbed
    - Advisory cancellation check before finalizing
    - Guarded finalize so a late cancellation is never overwritten
    - Best-effort dead-letter publishing for failed jobs
    """

    def __init__(
        self,
        repository: JobRepository,
        queue: MessageQueue,
        settings: Settings,
        processors: ProcessorRegistry,
    ):
        super().__init__(repository, queue, settings)
        self.processors = processors
        self.topic = settings.work_topic
        self.group_id = settings.work_consumer_group

    async def handle(
        self, raw: bytes, stop_event: asyncio.Event | None = None
    ) -> WorkOutcome:
        """Process one work message end to end."""
        try:
            message = WorkMessage.model_validate_json(raw)
        except MessageValidationError as e:
            logger.warning(
                "Dropping malformed work message",
                extra={"error": str(e), "payload": raw[:200]},
            )
            return WorkOutcome.DROPPED

        job_id = message.job_id

        if stop_event is not None and stop_event.is_set():
            logger.info(
                "Worker stopping, leaving job pending", extra={"job_id": job_id}
            )
            return WorkOutcome.NOT_CLAIMED

        claimed = await self.repository.conditional_update_status(
            job_id,
            expected_statuses(JobEvent.WORKER_CLAIMS),
            target_status(JobEvent.WORKER_CLAIMS),
        )
        if not claimed:
            logger.info("Job is not pending, skipping", extra={"job_id": job_id})
            return WorkOutcome.SKIPPED

        logger.info(
            "Processing job",
            extra={"job_id": job_id, "job_type": message.job_type, "job_name": message.name},
        )

        finished, error = await self._execute(message, stop_event)
        if not finished:
            logger.warning(
                "Worker stopping, abandoning job in processing",
                extra={"job_id": job_id},
            )
            return WorkOutcome.ABANDONED

        # Advisory only: the guarded finalize below is what keeps a
        # cancellation from being overwritten
        current = await self.repository.get_by_id(job_id)
        if current is None or current.status in _CANCELLATION_STATUSES:
            logger.info(
                "Job was cancelled during processing, skipping finalize",
                extra={"job_id": job_id},
            )
            return WorkOutcome.CANCELLED

        if error is None:
            return await self._finalize_success(job_id)
        return await self._finalize_failure(job_id, error, current.retry_count)

    async def _execute(
        self, message: WorkMessage, stop_event: asyncio.Event | None
    ) -> tuple[bool, str | None]:
        """
        Run the processor for the job.

        Returns:
            (finished, error). ``finished`` is False when the stop event fired
            first; ``error`` is the failure message or None on success.
        """
        try:
            processor = self.processors.get(message.job_type)
        except KeyError as e:
            return True, e.args[0]

        work = asyncio.create_task(
            processor.process(message.job_id, message.name, message.config)
        )

        if stop_event is not None:
            stopper = asyncio.create_task(stop_event.wait())
            done, _ = await asyncio.wait(
                {work, stopper}, return_when=asyncio.FIRST_COMPLETED
            )
            if work not in done:
                work.cancel()
                await asyncio.gather(work, return_exceptions=True)
                return False, None
            stopper.cancel()

        try:
            await work
        except Exception as e:
            logger.warning(
                "Job processing failed",
                extra={"job_id": message.job_id, "error": str(e)},
            )
            return True, str(e) or e.__class__.__name__

        return True, None

    async def _finalize_success(self, job_id: str) -> WorkOutcome:
        modified = await self.repository.conditional_update_status(
            job_id,
            expected_statuses(JobEvent.WORKER_SUCCESS),
            target_status(JobEvent.WORKER_SUCCESS),
        )
        if not modified:
            logger.info(
                "Job left processing before completion was recorded",
                extra={"job_id": job_id},
            )
            return WorkOutcome.CANCELLED

        logger.info("Job completed successfully", extra={"job_id": job_id})
        return WorkOutcome.COMPLETED

    async def _finalize_failure(
        self, job_id: str, error: str, retry_count: int
    ) -> WorkOutcome:
        modified = await self.repository.conditional_update_status(
            job_id,
            expected_statuses(JobEvent.WORKER_FAILURE),
            target_status(JobEvent.WORKER_FAILURE),
            error_message=error,
        )
        if not modified:
            logger.info(
                "Job left processing before failure was recorded",
                extra={"job_id": job_id},
            )
            return WorkOutcome.CANCELLED

        dead_letter = DeadLetterMessage(
            job_id=job_id, error_message=error, retry_count=retry_count
        )
        try:
            await self.queue.publish(
                self.settings.dead_letter_topic, encode(dead_letter), key=job_id
            )
        except QueueError as e:
            logger.warning(
                "Failed to publish dead-letter message",
                extra={"job_id": job_id, "error": str(e)},
            )

        logger.error(
            "Job failed",
            extra={"job_id": job_id, "error": error},
        )
        return WorkOutcome.FAILED
