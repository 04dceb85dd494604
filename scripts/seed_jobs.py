#!/usr/bin/env python3
"""
Demo Data Seeder - Populates the jobs table with sample jobs for CLI testing

Creates one job per interesting status so `jobflow jobs list` has something
to show. Existing jobs are deleted first.
"""

import asyncio
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete

from jobflow.config.settings import settings
from jobflow.infra.database import Database
from jobflow.v1.jobs.models import Job, JobStatus, JobType
from jobflow.v1.jobs.processors import SIMULATED_FAILURE_MESSAGE


def build_demo_jobs(now: datetime) -> list[Job]:
    """Sample jobs covering completed, failed, pending and processing."""
    return [
        Job(
            name="Data Export - Q4 Report",
            job_type=JobType.EXPORT.value,
            status=JobStatus.COMPLETED.value,
            config={"format": "csv", "includeHeaders": True},
            retry_count=0,
            created_at=now - timedelta(days=2),
            updated_at=now - timedelta(days=2) + timedelta(seconds=5),
        ),
        Job(
            name="Analyze Customer Segments",
            job_type=JobType.ANALYZE.value,
            status=JobStatus.COMPLETED.value,
            config={"algorithm": "kmeans", "clusters": 5},
            retry_count=0,
            created_at=now - timedelta(days=1),
            updated_at=now - timedelta(days=1) + timedelta(seconds=3),
        ),
        Job(
            name="Process Daily Transactions",
            job_type=JobType.PROCESS.value,
            status=JobStatus.FAILED.value,
            config={"batch_size": 1000},
            error_message=SIMULATED_FAILURE_MESSAGE,
            retry_count=1,
            created_at=now - timedelta(hours=5),
            updated_at=now - timedelta(hours=5) + timedelta(seconds=4),
        ),
        Job(
            name="Export User Activity Logs",
            job_type=JobType.EXPORT.value,
            status=JobStatus.PENDING.value,
            config={"date_range": "last_30_days"},
            retry_count=0,
            created_at=now - timedelta(hours=1),
            updated_at=now - timedelta(hours=1),
        ),
        Job(
            name="Analyze Sales Trends",
            job_type=JobType.ANALYZE.value,
            status=JobStatus.PROCESSING.value,
            config={"period": "monthly", "metrics": ["revenue", "units"]},
            retry_count=0,
            created_at=now - timedelta(minutes=1),
            updated_at=now - timedelta(seconds=30),
        ),
    ]


async def seed_jobs():
    """Replace all jobs with the demo set"""
    database = Database(settings)

    try:
        async with database.session() as db:
            await db.execute(delete(Job))

            jobs = build_demo_jobs(datetime.now(UTC))
            db.add_all(jobs)
            await db.commit()

        print(f"✅ Seeded {len(jobs)} jobs into the database.")
        print("\n📋 Seeded jobs:")
        for job in jobs:
            print(f"   • {job.name} ({job.status})")
        print("\n🚀 Try: jobflow jobs list")

    except Exception as e:
        print(f"❌ Error seeding data: {e}")
        raise
    finally:
        await database.close()


if __name__ == "__main__":
    asyncio.run(seed_jobs())
