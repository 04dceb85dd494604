"""Thin httpx wrapper that speaks the API's response envelope"""

from typing import Any

import httpx

API_PREFIX = "/v1"


class JobFlowError(Exception):
    """A failed API call: transport error, bad payload, or an ``ok: false`` envelope"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
    ):
        self.status_code = status_code
        self.error_type = error_type
        super().__init__(message)


class APIClient:
    """Synchronous client; every path is resolved under ``/v1``"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: int = 30,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers or {},
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            raise JobFlowError(
                f"Non-JSON response (HTTP {response.status_code})",
                response.status_code,
            ) from None

        if not isinstance(body, dict) or "ok" not in body:
            if response.is_error:
                raise JobFlowError(f"HTTP {response.status_code}", response.status_code)
            return body

        if response.is_error or not body["ok"]:
            error = body.get("error") or {}
            raise JobFlowError(
                f"API Error {response.status_code}: "
                f"{error.get('message', 'request failed')}",
                response.status_code,
                error.get("type"),
            )
        return body.get("data")

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self.client.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.RequestError as e:
            raise JobFlowError(f"Connection failed: {e}") from None
        return self._unwrap(response)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, json: dict[str, Any] | None = None) -> Any:
        return self._request("POST", path, json=json)
