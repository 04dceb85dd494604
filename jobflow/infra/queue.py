"""
Topic-based message queue transports.

Two implementations share one small interface:

- ``KafkaMessageQueue`` talks to Apache Kafka through aiokafka. Consumers
  join a consumer group and offsets are committed automatically, which gives
  at-least-once delivery.
- ``InMemoryMessageQueue`` keeps an append-only log per topic and a cursor
  per consumer group inside the process. It is meant for local runs and
  tests.

Payloads are JSON objects, encoded as UTF-8 bytes on the wire.
"""

import asyncio
import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Protocol

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.errors import KafkaError

from jobflow.config.settings import QueueBackend, Settings
from jobflow.v1.core.exceptions import QueueError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueMessage:
    """A message as delivered to a consumer."""

    topic: str
    value: bytes
    offset: int
    key: bytes | None = None


class QueueConsumer(Protocol):
    """Protocol for a consumer bound to one topic and consumer group."""

    async def start(self) -> None: ...

    async def receive(self, timeout_s: float) -> QueueMessage | None:
        """Return the next message, or None when none arrived in time."""
        ...

    async def stop(self) -> None: ...


class MessageQueue(Protocol):
    """Protocol for queue transports."""

    async def start(self) -> None: ...

    async def close(self) -> None: ...

    async def publish(
        self, topic: str, payload: dict[str, Any], key: str | None = None
    ) -> None:
        """Publish one JSON payload. Raises QueueError on failure."""
        ...

    def consumer(self, topic: str, group_id: str) -> QueueConsumer: ...


def _serialize(value: dict[str, Any]) -> bytes:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _serialize_key(key: str | None) -> bytes | None:
    return key.encode("utf-8") if key else None


class KafkaQueueConsumer:
    """aiokafka consumer for a single topic."""

    def __init__(
        self,
        bootstrap_servers: list[str],
        topic: str,
        group_id: str,
        auto_offset_reset: str = "earliest",
    ):
        self.topic = topic
        self.group_id = group_id
        self._bootstrap_servers = bootstrap_servers
        self._auto_offset_reset = auto_offset_reset
        self._consumer: AIOKafkaConsumer | None = None

    async def start(self) -> None:
        if self._consumer:
            return

        self._consumer = AIOKafkaConsumer(
            self.topic,
            bootstrap_servers=self._bootstrap_servers,
            group_id=self.group_id,
            enable_auto_commit=True,
            auto_offset_reset=self._auto_offset_reset,
        )
        try:
            await self._consumer.start()
        except KafkaError as e:
            self._consumer = None
            raise QueueError(f"Failed to start consumer for {self.topic}: {e}") from e

        logger.info(
            "Kafka consumer started",
            extra={"topic": self.topic, "group_id": self.group_id},
        )

    async def receive(self, timeout_s: float) -> QueueMessage | None:
        if not self._consumer:
            raise QueueError("Consumer is not started")

        try:
            batches = await self._consumer.getmany(
                timeout_ms=int(timeout_s * 1000), max_records=1
            )
        except KafkaError as e:
            raise QueueError(f"Failed to read from {self.topic}: {e}") from e

        for records in batches.values():
            for record in records:
                return QueueMessage(
                    topic=record.topic,
                    value=record.value,
                    offset=record.offset,
                    key=record.key,
                )
        return None

    async def stop(self) -> None:
        if self._consumer:
            await self._consumer.stop()
            self._consumer = None


class KafkaMessageQueue:
    """
    Kafka transport.

    Example:
        ```python
        queue = KafkaMessageQueue(settings)
        await queue.start()
        await queue.publish("jobs", {"job_id": "..."})
        await queue.close()
        ```
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._bootstrap_servers = [
            server.strip()
            for server in settings.kafka_bootstrap_servers.split(",")
            if server.strip()
        ]
        self._producer: AIOKafkaProducer | None = None

    async def start(self) -> None:
        """Start the shared producer."""
        if self._producer:
            return

        self._producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers,
            acks="all",
            value_serializer=_serialize,
            key_serializer=_serialize_key,
        )
        try:
            await self._producer.start()
        except KafkaError as e:
            self._producer = None
            raise QueueError(f"Failed to start Kafka producer: {e}") from e

    async def close(self) -> None:
        if self._producer:
            await self._producer.stop()
            self._producer = None

    async def publish(
        self, topic: str, payload: dict[str, Any], key: str | None = None
    ) -> None:
        if not self._producer:
            raise QueueError("Producer is not started")

        try:
            await self._producer.send_and_wait(topic, value=payload, key=key)
        except KafkaError as e:
            raise QueueError(f"Failed to publish to {topic}: {e}") from e

        logger.debug("Published message", extra={"topic": topic, "key": key})

    def consumer(self, topic: str, group_id: str) -> KafkaQueueConsumer:
        return KafkaQueueConsumer(
            self._bootstrap_servers,
            topic,
            group_id,
            auto_offset_reset=self.settings.kafka_auto_offset_reset,
        )


class InMemoryQueueConsumer:
    """Consumer reading an in-memory topic log through its group cursor."""

    def __init__(self, queue: "InMemoryMessageQueue", topic: str, group_id: str):
        self.topic = topic
        self.group_id = group_id
        self._queue = queue

    async def start(self) -> None:
        self._queue._join(self.topic, self.group_id)

    async def receive(self, timeout_s: float) -> QueueMessage | None:
        return await self._queue._next(self.topic, self.group_id, timeout_s)

    async def stop(self) -> None:
        return None


class InMemoryMessageQueue:
    """
    In-process broker with Kafka-like semantics.

    Every consumer group sees every message of a topic once, in publish
    order. Consumers in the same group share a cursor. New groups start
    from the beginning of the log.
    """

    def __init__(self):
        self._topics: dict[str, list[QueueMessage]] = defaultdict(list)
        self._cursors: dict[tuple[str, str], int] = {}
        self._condition = asyncio.Condition()
        # Tests flip this to simulate a broker outage
        self.fail_publish = False

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def publish(
        self, topic: str, payload: dict[str, Any], key: str | None = None
    ) -> None:
        if self.fail_publish:
            raise QueueError(f"Failed to publish to {topic}: broker unavailable")
        await self.publish_raw(topic, _serialize(payload), key=key)

    async def publish_raw(
        self, topic: str, value: bytes, key: str | None = None
    ) -> None:
        """Append raw bytes to a topic, bypassing JSON encoding."""
        async with self._condition:
            log = self._topics[topic]
            log.append(
                QueueMessage(
                    topic=topic, value=value, offset=len(log), key=_serialize_key(key)
                )
            )
            self._condition.notify_all()

    def consumer(self, topic: str, group_id: str) -> InMemoryQueueConsumer:
        return InMemoryQueueConsumer(self, topic, group_id)

    def published(self, topic: str) -> list[dict[str, Any]]:
        """Decoded payloads published to ``topic`` so far."""
        return [json.loads(message.value) for message in self._topics.get(topic, [])]

    def _join(self, topic: str, group_id: str) -> None:
        self._cursors.setdefault((topic, group_id), 0)

    async def _next(
        self, topic: str, group_id: str, timeout_s: float
    ) -> QueueMessage | None:
        cursor_key = (topic, group_id)
        self._join(topic, group_id)

        async with self._condition:
            try:
                await asyncio.wait_for(
                    self._condition.wait_for(
                        lambda: self._cursors[cursor_key] < len(self._topics[topic])
                    ),
                    timeout=timeout_s,
                )
            except asyncio.TimeoutError:
                return None

            message = self._topics[topic][self._cursors[cursor_key]]
            self._cursors[cursor_key] += 1
            return message


def create_queue(settings: Settings) -> MessageQueue:
    """Build the transport selected by ``settings.queue_backend``."""
    if settings.queue_backend == QueueBackend.MEMORY:
        return InMemoryMessageQueue()
    return KafkaMessageQueue(settings)
