import asyncio
from collections.abc import AsyncGenerator, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from jobflow.config.settings import QueueBackend, Settings
from jobflow.infra.database import Database
from jobflow.infra.queue import InMemoryMessageQueue
from jobflow.main import create_app
from jobflow.v1.core.exceptions import JobExecutionError
from jobflow.v1.core.registries import ProcessorRegistry
from jobflow.v1.jobs.cancellations import CancellationConsumer
from jobflow.v1.jobs.models import Job, JobStatus, JobType
from jobflow.v1.jobs.repository import JobRepository
from jobflow.v1.jobs.service import JobActionService, JobService
from jobflow.v1.jobs.worker import WorkConsumer


class ScriptedProcessor:
    """Processor whose outcome is decided by the test."""

    def __init__(self):
        self.calls: list[dict[str, Any]] = []
        self.error: Exception | None = None
        # When set, processing blocks until the test releases it
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    async def process(
        self, job_id: str, name: str, config: dict[str, Any] | None
    ) -> None:
        self.calls.append({"job_id": job_id, "name": name, "config": config})
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    def fail_with(self, message: str) -> None:
        self.error = JobExecutionError(message)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings for an isolated SQLite store and in-memory queue."""
    return Settings(
        environment="development",
        debug=False,
        log_level="WARNING",
        database_url=f"sqlite+aiosqlite:///{tmp_path}/jobs.db",
        db_auto_create=True,
        queue_backend=QueueBackend.MEMORY,
        consumer_poll_timeout_s=0.05,
        consumer_error_backoff_s=0.01,
        worker_min_processing_s=0.0,
        worker_max_processing_s=0.0,
        worker_failure_rate=0.0,
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """A fresh database with the schema created."""
    database = Database(settings)
    await database.create_all()
    yield database
    await database.close()


@pytest.fixture
def queue() -> InMemoryMessageQueue:
    return InMemoryMessageQueue()


@pytest.fixture
def repository(database: Database) -> JobRepository:
    return JobRepository(database)


@pytest.fixture
def job_service(repository, queue, settings) -> JobService:
    return JobService(repository, queue, settings)


@pytest.fixture
def action_service(repository, queue, settings) -> JobActionService:
    return JobActionService(repository, queue, settings)


@pytest.fixture
def processor() -> ScriptedProcessor:
    return ScriptedProcessor()


@pytest.fixture
def processors(processor: ScriptedProcessor) -> ProcessorRegistry:
    registry = ProcessorRegistry()
    for job_type in JobType:
        registry.register(job_type.value, processor)
    return registry


@pytest.fixture
def work_consumer(repository, queue, settings, processors) -> WorkConsumer:
    return WorkConsumer(repository, queue, settings, processors)


@pytest.fixture
def cancellation_consumer(repository, queue, settings) -> CancellationConsumer:
    return CancellationConsumer(repository, queue, settings)


@pytest.fixture
def make_job(repository: JobRepository):
    """Insert a job directly in the given status."""

    async def _make_job(
        status: JobStatus = JobStatus.PENDING,
        retry_count: int = 0,
        name: str = "nightly-report",
        job_type: str = "process",
        config: dict[str, Any] | None = None,
        **fields: Any,
    ) -> Job:
        job = Job(
            name=name,
            job_type=job_type,
            status=status.value,
            retry_count=retry_count,
            config=config,
            **fields,
        )
        await repository.create(job)
        return job

    return _make_job


@pytest.fixture
def app(settings: Settings):
    """Application wired to the test settings."""
    return create_app(settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client; entering it runs the application lifespan."""
    with TestClient(app) as test_client:
        yield test_client
