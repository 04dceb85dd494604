import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from jobflow.infra.queue import InMemoryMessageQueue
from jobflow.main import create_app
from jobflow.runner import run_consumers
from jobflow.v1.core.exceptions import QueueError
from jobflow.v1.jobs.models import JobStatus


async def wait_for_status(repository, job_id, status: str, attempts: int = 150):
    for _ in range(attempts):
        job = await repository.get_by_id(job_id)
        if job.status == status:
            return job
        await asyncio.sleep(0.02)
    return await repository.get_by_id(job_id)


@pytest.mark.asyncio
async def test_full_lifecycle_through_both_consumers(
    settings, database, queue, processors, processor, job_service, action_service,
    repository,
):
    stop_event = asyncio.Event()
    consumers = asyncio.create_task(
        run_consumers(settings, database, queue, stop_event, processors)
    )

    # Submit, then fail
    processor.fail_with("Simulated processing failure")
    job = await job_service.submit("flaky", "process")
    failed = await wait_for_status(repository, job.id, "failed")
    assert failed.error_message == "Simulated processing failure"
    for _ in range(50):
        if queue.published("jobs_dlq"):
            break
        await asyncio.sleep(0.02)
    assert len(queue.published("jobs_dlq")) == 1

    # Retry succeeds
    processor.error = None
    await action_service.retry(job.id)
    completed = await wait_for_status(repository, job.id, "completed")
    assert completed.retry_count == 1

    # A second job is cancelled mid-flight
    processor.gate = asyncio.Event()
    processor.started.clear()
    slow = await job_service.submit("slow", "analyze")
    await asyncio.wait_for(processor.started.wait(), timeout=3)
    await action_service.cancel(slow.id)
    cancelled = await wait_for_status(repository, slow.id, "cancelled")
    processor.gate.set()

    stop_event.set()
    await asyncio.wait_for(consumers, timeout=3)

    assert cancelled.status == JobStatus.CANCELLED.value
    assert (await repository.get_by_id(slow.id)).status == "cancelled"


def test_api_can_host_the_consumers(settings):
    app = create_app(settings.model_copy(update={"run_consumers_in_api": True}))

    with TestClient(app) as client:
        job = client.post(
            "/v1/jobs", json={"name": "in-process", "job_type": "export"}
        ).json()["data"]

        status = None
        for _ in range(150):
            status = client.get(f"/v1/jobs/{job['id']}").json()["data"]["status"]
            if status == "completed":
                break
            client.portal.call(asyncio.sleep, 0.02)

    assert status == "completed"


def test_startup_failure_still_disposes_database(settings):
    queue = InMemoryMessageQueue()
    queue.start = AsyncMock(side_effect=QueueError("broker unreachable"))
    database = Mock()
    database.create_all = AsyncMock()
    database.close = AsyncMock()

    with patch("jobflow.main.create_queue", return_value=queue), patch(
        "jobflow.main.Database", return_value=database
    ):
        app = create_app(settings)
        with pytest.raises(QueueError):
            with TestClient(app):
                pass

    database.close.assert_awaited_once()
