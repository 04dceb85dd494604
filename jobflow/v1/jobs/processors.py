"""
Processors that carry out the work for each job type.

The shipped processors simulate work: they sleep for a random duration and
fail at a configurable rate.
"""

import asyncio
import logging
import random
from typing import Any

from jobflow.config.settings import Settings
from jobflow.v1.core.exceptions import JobExecutionError
from jobflow.v1.core.registries import ProcessorRegistry
from jobflow.v1.jobs.models import JobType

logger = logging.getLogger(__name__)

SIMULATED_FAILURE_MESSAGE = "Simulated processing failure"


class SimulatedProcessor:
    """
    Stand-in processor for a job type.

    Sleeps between ``min_seconds`` and ``max_seconds`` and then fails with
    probability ``failure_rate``.
    """

    def __init__(
        self,
        job_type: str,
        min_seconds: float,
        max_seconds: float,
        failure_rate: float,
        rng: random.Random | None = None,
    ):
        self.job_type = job_type
        self.min_seconds = min_seconds
        self.max_seconds = max_seconds
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()

    async def process(
        self, job_id: str, name: str, config: dict[str, Any] | None
    ) -> None:
        duration = self._rng.uniform(self.min_seconds, self.max_seconds)
        logger.info(
            "Simulating work",
            extra={
                "job_id": job_id,
                "job_type": self.job_type,
                "duration_s": round(duration, 2),
            },
        )
        await asyncio.sleep(duration)

        if self._rng.random() < self.failure_rate:
            raise JobExecutionError(SIMULATED_FAILURE_MESSAGE)


def build_processor_registry(
    settings: Settings, rng: random.Random | None = None
) -> ProcessorRegistry:
    """Register a simulated processor for every job type."""
    registry = ProcessorRegistry()
    for job_type in JobType:
        registry.register(
            job_type.value,
            SimulatedProcessor(
                job_type.value,
                min_seconds=settings.worker_min_processing_s,
                max_seconds=settings.worker_max_processing_s,
                failure_rate=settings.worker_failure_rate,
                rng=rng,
            ),
        )

    if settings.environment != "development":
        registry.freeze()

    logger.info("Job processors registered", extra={"processors": registry.names()})
    return registry
