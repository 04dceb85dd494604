import random

import pytest

from jobflow.config.settings import Settings
from jobflow.v1.core.exceptions import JobExecutionError
from jobflow.v1.jobs.processors import (
    SIMULATED_FAILURE_MESSAGE,
    SimulatedProcessor,
    build_processor_registry,
)


@pytest.mark.asyncio
async def test_simulated_processor_succeeds_at_zero_failure_rate():
    processor = SimulatedProcessor("process", 0.0, 0.0, failure_rate=0.0)
    await processor.process("job-1", "report", None)


@pytest.mark.asyncio
async def test_simulated_processor_fails_at_full_failure_rate():
    processor = SimulatedProcessor("process", 0.0, 0.0, failure_rate=1.0)

    with pytest.raises(JobExecutionError, match=SIMULATED_FAILURE_MESSAGE):
        await processor.process("job-1", "report", {"a": 1})


@pytest.mark.asyncio
async def test_simulated_processor_is_reproducible_with_seeded_rng():
    outcomes = []
    for _ in range(2):
        processor = SimulatedProcessor(
            "analyze", 0.0, 0.0, failure_rate=0.5, rng=random.Random(42)
        )
        run = []
        for _ in range(10):
            try:
                await processor.process("job", "n", None)
                run.append(True)
            except JobExecutionError:
                run.append(False)
        outcomes.append(run)

    assert outcomes[0] == outcomes[1]


def test_registry_covers_every_job_type():
    registry = build_processor_registry(Settings(environment="development"))

    assert registry.names() == ["analyze", "export", "process"]
    assert not registry.frozen

    processor = registry.get("export")
    assert processor.min_seconds == 2.0
    assert processor.max_seconds == 5.0
    assert processor.failure_rate == 0.2


def test_registry_frozen_outside_development():
    registry = build_processor_registry(Settings(environment="staging"))

    assert registry.frozen
    with pytest.raises(RuntimeError, match="frozen"):
        registry.register("transcode", SimulatedProcessor("transcode", 0, 0, 0))
