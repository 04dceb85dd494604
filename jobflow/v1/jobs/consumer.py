"""
Shared consume loop for the queue-driven job consumers.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from jobflow.config.settings import Settings
from jobflow.infra.queue import MessageQueue, QueueConsumer
from jobflow.v1.core.exceptions import QueueError
from jobflow.v1.jobs.repository import JobRepository

logger = logging.getLogger(__name__)


class ConsumerLoop(ABC):
    """
    Base class for a consumer bound to one topic and consumer group.

    Subclasses implement ``handle``. The loop keeps going through read and
    handler errors and exits once the shared stop event is set. Messages are
    acknowledged by the transport itself, so a handler error never blocks
    the topic.
    """

    topic: str
    group_id: str

    def __init__(
        self, repository: JobRepository, queue: MessageQueue, settings: Settings
    ):
        self.repository = repository
        self.queue = queue
        self.settings = settings

    @abstractmethod
    async def handle(self, raw: bytes, stop_event: asyncio.Event | None = None) -> Any:
        """Process one raw message payload."""

    async def run(self, stop_event: asyncio.Event) -> None:
        """Consume until ``stop_event`` is set."""
        consumer = await self._start_consumer(stop_event)
        if consumer is None:
            return

        logger.info(
            "Consumer started", extra={"topic": self.topic, "group_id": self.group_id}
        )

        try:
            while not stop_event.is_set():
                try:
                    message = await consumer.receive(
                        self.settings.consumer_poll_timeout_s
                    )
                except QueueError:
                    logger.exception(
                        "Error reading message", extra={"topic": self.topic}
                    )
                    await self._backoff(stop_event)
                    continue

                if message is None:
                    continue

                try:
                    await self.handle(message.value, stop_event)
                except Exception:
                    logger.exception(
                        "Error handling message",
                        extra={"topic": self.topic, "offset": message.offset},
                    )
        finally:
            await consumer.stop()
            logger.info("Consumer stopped", extra={"topic": self.topic})

    async def _start_consumer(self, stop_event: asyncio.Event) -> QueueConsumer | None:
        """Start the transport consumer, retrying until it works or we stop."""
        while not stop_event.is_set():
            consumer = self.queue.consumer(self.topic, self.group_id)
            try:
                await consumer.start()
                return consumer
            except QueueError:
                logger.exception(
                    "Failed to start consumer", extra={"topic": self.topic}
                )
                await self._backoff(stop_event)
        return None

    async def _backoff(self, stop_event: asyncio.Event) -> None:
        """Pause after an error, returning early if we are asked to stop."""
        try:
            await asyncio.wait_for(
                stop_event.wait(), timeout=self.settings.consumer_error_backoff_s
            )
        except asyncio.TimeoutError:
            pass
