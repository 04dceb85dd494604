"""
Worker process: runs the work and cancellation consumers until signalled.
"""

import asyncio
import logging
import signal

from jobflow.config.logging import setup_logging
from jobflow.config.settings import QueueBackend, Settings, get_settings
from jobflow.infra.database import Database
from jobflow.infra.queue import MessageQueue, create_queue
from jobflow.v1.core.registries import ProcessorRegistry
from jobflow.v1.jobs.cancellations import CancellationConsumer
from jobflow.v1.jobs.processors import build_processor_registry
from jobflow.v1.jobs.repository import JobRepository
from jobflow.v1.jobs.worker import WorkConsumer

logger = logging.getLogger(__name__)


async def run_consumers(
    settings: Settings,
    database: Database,
    queue: MessageQueue,
    stop_event: asyncio.Event,
    processors: ProcessorRegistry | None = None,
) -> None:
    """Run both consumer loops until ``stop_event`` is set."""
    repository = JobRepository(database)
    processors = processors or build_processor_registry(settings)

    consumers = [
        WorkConsumer(repository, queue, settings, processors),
        CancellationConsumer(repository, queue, settings),
    ]

    logger.info(
        "Starting job consumers",
        extra={"topics": [consumer.topic for consumer in consumers]},
    )
    await asyncio.gather(*(consumer.run(stop_event) for consumer in consumers))
    logger.info("Job consumers stopped")


async def main_async(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    setup_logging(settings)

    if settings.queue_backend == QueueBackend.MEMORY:
        logger.warning(
            "In-memory queue selected for a standalone worker; "
            "it will only see messages published by this process"
        )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    database = Database(settings)
    queue = create_queue(settings)

    try:
        if settings.db_auto_create:
            await database.create_all()
        await queue.start()
        await run_consumers(settings, database, queue, stop_event)
    finally:
        await queue.close()
        await database.close()


def main() -> None:
    """Entry point for the ``jobflow-worker`` script."""
    asyncio.run(main_async())


if __name__ == "__main__":
    main()
