"""Concurrent writers racing on the same job."""

import asyncio
import json

import pytest

from jobflow.v1.jobs.messages import WorkMessage, encode
from jobflow.v1.jobs.models import JobStatus
from jobflow.v1.jobs.worker import WorkOutcome


@pytest.mark.asyncio
async def test_finalize_and_cancel_confirm_exactly_one_wins(
    repository, make_job
):
    """A worker finalize and a cancellation confirm never both apply."""
    for _ in range(10):
        job = await make_job(JobStatus.PROCESSING)

        complete, cancel = await asyncio.gather(
            repository.conditional_update_status(
                job.id, {JobStatus.PROCESSING}, JobStatus.COMPLETED
            ),
            repository.conditional_update_status(
                job.id,
                {JobStatus.PENDING, JobStatus.PROCESSING, JobStatus.CANCELLING},
                JobStatus.CANCELLED,
            ),
        )

        assert complete + cancel == 1
        stored = await repository.get_by_id(job.id)
        assert stored.status == ("completed" if complete else "cancelled")


@pytest.mark.asyncio
async def test_cancel_confirmed_after_check_is_not_overwritten(
    work_consumer, cancellation_consumer, make_job, repository, monkeypatch
):
    """The cancellation lands after the advisory re-read, before finalize."""
    job = await make_job()
    original_get = repository.get_by_id

    async def read_then_cancel(job_id):
        current = await original_get(job_id)
        await cancellation_consumer.handle(
            json.dumps({"job_id": str(job.id), "cancelled_at": "2026-01-01T00:00:00Z"})
            .encode()
        )
        return current

    monkeypatch.setattr(repository, "get_by_id", read_then_cancel)

    outcome = await work_consumer.handle(
        json.dumps(encode(WorkMessage.from_job(job))).encode()
    )

    assert outcome is WorkOutcome.CANCELLED
    assert (await original_get(job.id)).status == "cancelled"


@pytest.mark.asyncio
async def test_concurrent_claims_process_once(work_consumer, make_job, processor):
    job = await make_job()
    payload = json.dumps(encode(WorkMessage.from_job(job))).encode()

    outcomes = await asyncio.gather(
        work_consumer.handle(payload), work_consumer.handle(payload)
    )

    assert sorted(outcomes) == sorted([WorkOutcome.COMPLETED, WorkOutcome.SKIPPED])
    assert len(processor.calls) == 1


@pytest.mark.asyncio
async def test_concurrent_retries_increment_once(action_service, make_job, repository):
    job = await make_job(JobStatus.FAILED, retry_count=0)

    results = await asyncio.gather(
        action_service.retry(job.id),
        action_service.retry(job.id),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert (await repository.get_by_id(job.id)).retry_count == 1
