import uuid
from datetime import UTC, datetime, timedelta

import pytest

from jobflow.v1.core.exceptions import (
    InvalidJobStateError,
    JobNotFoundError,
    MaxRetriesReachedError,
    ValidationError,
)
from jobflow.v1.jobs.models import MAX_RETRIES, JobStatus


class TestSubmit:
    @pytest.mark.asyncio
    async def test_submit_persists_pending_job_and_publishes(
        self, job_service, repository, queue
    ):
        job = await job_service.submit("nightly-report", "export", {"format": "csv"})

        stored = await repository.get_by_id(job.id)
        assert stored.status == "pending"
        assert stored.retry_count == 0
        assert stored.config == {"format": "csv"}

        published = queue.published("jobs")
        assert len(published) == 1
        assert published[0]["job_id"] == str(job.id)
        assert published[0]["name"] == "nightly-report"
        assert published[0]["job_type"] == "export"
        assert published[0]["config"] == {"format": "csv"}
        assert "created_at" in published[0]

    @pytest.mark.asyncio
    async def test_submit_omits_missing_config_from_message(self, job_service, queue):
        await job_service.submit("no-config", "process")

        assert "config" not in queue.published("jobs")[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   "])
    async def test_blank_name_rejected(self, job_service, repository, queue, name):
        with pytest.raises(ValidationError) as exc_info:
            await job_service.submit(name, "process")

        assert exc_info.value.field == "name"
        assert exc_info.value.status_code == 400
        _, total = await repository.list(1, 10)
        assert total == 0
        assert queue.published("jobs") == []

    @pytest.mark.asyncio
    async def test_unknown_job_type_rejected(self, job_service, queue):
        with pytest.raises(ValidationError) as exc_info:
            await job_service.submit("report", "transcode")

        assert exc_info.value.field == "job_type"
        assert "process, analyze, export" in exc_info.value.message
        assert queue.published("jobs") == []

    @pytest.mark.asyncio
    async def test_name_is_validated_before_job_type(self, job_service):
        with pytest.raises(ValidationError) as exc_info:
            await job_service.submit("", "transcode")

        assert exc_info.value.field == "name"

    @pytest.mark.asyncio
    async def test_publish_failure_is_swallowed(self, job_service, repository, queue):
        queue.fail_publish = True

        job = await job_service.submit("report", "analyze")

        stored = await repository.get_by_id(job.id)
        assert stored.status == "pending"
        assert queue.published("jobs") == []


class TestReads:
    @pytest.mark.asyncio
    async def test_get_job(self, job_service, make_job):
        job = await make_job()
        assert (await job_service.get_job(str(job.id))).id == job.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("job_id", [str(uuid.uuid4()), "not-a-uuid"])
    async def test_get_missing_job(self, job_service, job_id):
        with pytest.raises(JobNotFoundError) as exc_info:
            await job_service.get_job(job_id)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("page", "limit", "expected"),
        [
            (1, 10, (1, 10)),
            (0, 10, (1, 10)),
            (-3, 5, (1, 5)),
            (2, 0, (2, 10)),
            (1, 101, (1, 10)),
            (1, 100, (1, 100)),
        ],
    )
    async def test_list_paging_defaults(self, job_service, page, limit, expected):
        _, _, used_page, used_limit = await job_service.list_jobs(page, limit)
        assert (used_page, used_limit) == expected


class TestCancel:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [JobStatus.PENDING, JobStatus.PROCESSING])
    async def test_cancel_moves_to_cancelling_and_publishes(
        self, action_service, make_job, queue, status
    ):
        job = await make_job(status)

        updated = await action_service.cancel(str(job.id))

        assert updated.status == "cancelling"
        published = queue.published("job_cancellations")
        assert len(published) == 1
        assert published[0]["job_id"] == str(job.id)
        cancelled_at = datetime.fromisoformat(published[0]["cancelled_at"])
        assert cancelled_at.timestamp() > 0
        assert abs(datetime.now(UTC) - cancelled_at) < timedelta(minutes=1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.CANCELLING,
            JobStatus.CANCELLED,
        ],
    )
    async def test_cancel_rejected_outside_pending_or_processing(
        self, action_service, make_job, repository, queue, status
    ):
        job = await make_job(status)

        with pytest.raises(InvalidJobStateError):
            await action_service.cancel(job.id)

        assert (await repository.get_by_id(job.id)).status == status.value
        assert queue.published("job_cancellations") == []

    @pytest.mark.asyncio
    async def test_cancel_missing_job(self, action_service):
        with pytest.raises(JobNotFoundError):
            await action_service.cancel(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_cancel_loses_to_concurrent_finalize(
        self, action_service, make_job, repository, queue, monkeypatch
    ):
        """The job completes between the read and the guarded write."""
        job = await make_job(JobStatus.PROCESSING)
        original = repository.conditional_update_status

        async def finalize_first(*args, **kwargs):
            await original(job.id, {JobStatus.PROCESSING}, JobStatus.COMPLETED)
            return await original(*args, **kwargs)

        monkeypatch.setattr(repository, "conditional_update_status", finalize_first)

        with pytest.raises(InvalidJobStateError):
            await action_service.cancel(job.id)

        assert (await repository.get_by_id(job.id)).status == "completed"
        assert queue.published("job_cancellations") == []

    @pytest.mark.asyncio
    async def test_cancel_publish_failure_is_swallowed(
        self, action_service, make_job, queue
    ):
        job = await make_job(JobStatus.PENDING)
        queue.fail_publish = True

        updated = await action_service.cancel(job.id)

        assert updated.status == "cancelling"


class TestRetry:
    @pytest.mark.asyncio
    async def test_retry_resets_to_pending_and_republishes(
        self, action_service, make_job, queue
    ):
        job = await make_job(
            JobStatus.FAILED,
            retry_count=1,
            config={"batch_size": 1000},
            error_message="Simulated processing failure",
        )

        updated = await action_service.retry(str(job.id))

        assert updated.status == "pending"
        assert updated.retry_count == 2
        # The previous failure stays visible until the next outcome
        assert updated.error_message == "Simulated processing failure"

        published = queue.published("jobs")
        assert len(published) == 1
        assert published[0]["job_id"] == str(job.id)
        assert published[0]["config"] == {"batch_size": 1000}

    @pytest.mark.asyncio
    async def test_last_retry_reaches_cap_and_republishes_once(
        self, action_service, make_job, repository, queue
    ):
        job = await make_job(JobStatus.FAILED, retry_count=MAX_RETRIES - 1)

        updated = await action_service.retry(job.id)

        assert updated.retry_count == MAX_RETRIES
        assert (await repository.get_by_id(job.id)).retry_count == 3
        published = queue.published("jobs")
        assert [message["job_id"] for message in published] == [str(job.id)]

    @pytest.mark.asyncio
    async def test_retry_at_cap_raises(self, action_service, make_job, repository, queue):
        job = await make_job(JobStatus.FAILED, retry_count=MAX_RETRIES)

        with pytest.raises(MaxRetriesReachedError):
            await action_service.retry(job.id)

        stored = await repository.get_by_id(job.id)
        assert stored.status == "failed"
        assert stored.retry_count == MAX_RETRIES
        assert queue.published("jobs") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [
            JobStatus.PENDING,
            JobStatus.PROCESSING,
            JobStatus.COMPLETED,
            JobStatus.CANCELLING,
            JobStatus.CANCELLED,
        ],
    )
    async def test_retry_requires_failed(self, action_service, make_job, status):
        job = await make_job(status)

        with pytest.raises(InvalidJobStateError):
            await action_service.retry(job.id)

    @pytest.mark.asyncio
    async def test_retry_missing_job(self, action_service):
        with pytest.raises(JobNotFoundError):
            await action_service.retry("not-a-uuid")

    @pytest.mark.asyncio
    async def test_retry_count_never_exceeds_cap(self, action_service, make_job):
        job = await make_job(JobStatus.FAILED)

        for expected in range(1, MAX_RETRIES + 1):
            updated = await action_service.retry(job.id)
            assert updated.retry_count == expected
            # Simulate the next attempt failing again
            await action_service.repository.conditional_update_status(
                job.id, {JobStatus.PENDING}, JobStatus.FAILED
            )

        with pytest.raises(MaxRetriesReachedError):
            await action_service.retry(job.id)

    @pytest.mark.asyncio
    async def test_stale_retry_does_not_double_increment(
        self, action_service, make_job, repository, queue, monkeypatch
    ):
        """Another retry lands between the read and the guarded write."""
        job = await make_job(JobStatus.FAILED, retry_count=0)
        original = repository.conditional_update_status

        async def retry_first(*args, **kwargs):
            await original(
                job.id,
                {JobStatus.FAILED},
                JobStatus.PENDING,
                expected_retry_count=0,
                retry_count=1,
            )
            return await original(*args, **kwargs)

        monkeypatch.setattr(repository, "conditional_update_status", retry_first)

        with pytest.raises(InvalidJobStateError):
            await action_service.retry(job.id)

        stored = await repository.get_by_id(job.id)
        assert stored.retry_count == 1
        assert queue.published("jobs") == []
