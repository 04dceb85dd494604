"""
Cancellation topic consumer.
"""

import asyncio
import logging

from pydantic import ValidationError as MessageValidationError

from jobflow.config.settings import Settings
from jobflow.infra.queue import MessageQueue
from jobflow.v1.jobs.consumer import ConsumerLoop
from jobflow.v1.jobs.messages import CancellationMessage
from jobflow.v1.jobs.repository import JobRepository
from jobflow.v1.jobs.state_machine import JobEvent, expected_statuses, target_status

logger = logging.getLogger(__name__)


class CancellationConsumer(ConsumerLoop):
    """Confirms cancellations requested through the cancel action."""

    def __init__(
        self, repository: JobRepository, queue: MessageQueue, settings: Settings
    ):
        super().__init__(repository, queue, settings)
        self.topic = settings.cancellation_topic
        self.group_id = settings.cancellation_consumer_group

    async def handle(self, raw: bytes, stop_event: asyncio.Event | None = None) -> int:
        """
        Move the job to cancelled if it has not already settled.

        Returns:
            Rows modified. 0 means the job was already completed, failed or
            cancelled, which is an expected outcome for redelivered or late
            messages.
        """
        try:
            message = CancellationMessage.model_validate_json(raw)
        except MessageValidationError as e:
            logger.warning(
                "Dropping malformed cancellation message",
                extra={"error": str(e), "payload": raw[:200]},
            )
            return 0

        modified = await self.repository.conditional_update_status(
            message.job_id,
            expected_statuses(JobEvent.CANCEL_CONFIRMED),
            target_status(JobEvent.CANCEL_CONFIRMED),
        )

        if modified:
            logger.info("Job cancelled", extra={"job_id": message.job_id})
        else:
            logger.info(
                "Job could not be cancelled, it has already settled",
                extra={"job_id": message.job_id},
            )
        return modified
