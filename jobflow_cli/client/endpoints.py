"""API Endpoint Wrappers"""

from typing import Any

from .base import APIClient, JobFlowError
from ..utils.config_manager import config

__all__ = ["JobFlowClient", "JobFlowError"]


class JobFlowClient:
    """High-level client with one method per API endpoint"""

    def __init__(self, base_url: str | None = None, **client_options: Any):
        api_config = config.load_config().get("api", {})
        final_base_url = base_url or api_config.get("base_url", "http://localhost:8000")

        self.api = APIClient(
            base_url=final_base_url,
            timeout=int(api_config.get("timeout", 30)),
            **client_options,
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    # Health Check
    def health_check(self) -> dict[str, Any]:
        """Check API health status"""
        return self.api.get("/healthz")

    # Jobs Endpoints
    def submit_job(
        self, name: str, job_type: str, config: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Create a job"""
        data: dict[str, Any] = {"name": name, "job_type": job_type}
        if config is not None:
            data["config"] = config
        return self.api.post("/jobs", data)

    def list_jobs(self, page: int = 1, limit: int = 10) -> dict[str, Any]:
        """List jobs newest first"""
        return self.api.get("/jobs", {"page": page, "limit": limit})

    def get_job(self, job_id: str) -> dict[str, Any]:
        """Get specific job by ID"""
        return self.api.get(f"/jobs/{job_id}")

    def cancel_job(self, job_id: str) -> dict[str, Any]:
        """Request cancellation of a job"""
        return self.api.post(f"/jobs/{job_id}/cancel")

    def retry_job(self, job_id: str) -> dict[str, Any]:
        """Retry a failed job"""
        return self.api.post(f"/jobs/{job_id}/retry")
