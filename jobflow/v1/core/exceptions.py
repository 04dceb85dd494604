import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from jobflow.config.logging import add_request_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class JobFlowException(Exception):
    """Base for errors that map onto an HTTP status.

    ``error_type`` is echoed as ``error.type`` in the response envelope.
    """

    error_type = "internal_error"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(JobFlowException):
    """Bad input on job creation."""

    error_type = "validation_error"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(
            f"{field}: {message}", status.HTTP_400_BAD_REQUEST, {"field": field}
        )


class JobNotFoundError(JobFlowException):
    error_type = "job_not_found"

    def __init__(self, job_id: Any):
        self.job_id = str(job_id)
        super().__init__(
            "job not found", status.HTTP_404_NOT_FOUND, {"job_id": self.job_id}
        )


class InvalidJobStateError(JobFlowException):
    """The operation is not legal for the job's current status."""

    error_type = "invalid_state"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class InvalidTransitionError(InvalidJobStateError):
    """No edge exists for this (status, event) pair."""

    error_type = "invalid_transition"

    def __init__(self, current: str, event: str):
        self.current = current
        self.event = event
        super().__init__(
            f"cannot apply '{event}' to a job in status '{current}'",
            {"status": current, "event": event},
        )


class MaxRetriesReachedError(JobFlowException):
    error_type = "max_retries_reached"

    def __init__(self, retry_count: int, job_id: Any = None):
        details: dict[str, Any] = {"retry_count": retry_count}
        if job_id is not None:
            details["job_id"] = str(job_id)
        super().__init__(
            "maximum retry attempts reached", status.HTTP_409_CONFLICT, details
        )


class JobExecutionError(Exception):
    """Raised by a processor when a unit of work fails."""


class QueueError(Exception):
    """Raised by a queue transport when publishing or consuming fails."""


def _now() -> str:
    return datetime.now(UTC).isoformat()


def create_error_response(
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
    error_type: str | None = None,
) -> dict[str, Any]:
    """Build the ``ok: false`` envelope."""
    error: dict[str, Any] = {
        "message": message,
        "code": status_code,
        "details": details or {},
    }
    if error_type:
        error["type"] = error_type
    return {"ok": False, "error": error, "request_id": request_id, "timestamp": _now()}


def create_success_response(
    data: Any, message: str | None = None, request_id: str | None = None
) -> dict[str, Any]:
    """Build the ``ok: true`` envelope around ``data``."""
    return {
        "ok": True,
        "data": data,
        "message": message,
        "request_id": request_id,
        "timestamp": _now(),
    }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_json(
    request_id: str,
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    error_type: str | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(
            status_code, message, details, request_id, error_type
        ),
        headers={REQUEST_ID_HEADER: request_id},
    )


async def job_flow_exception_handler(
    request: Request, exc: JobFlowException
) -> JSONResponse:
    request_id = _request_id(request)
    logger.warning(
        "Request rejected",
        error_type=exc.error_type,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
    )
    return _error_json(
        request_id, exc.status_code, exc.message, exc.details, exc.error_type
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    request_id = _request_id(request)
    logger.warning("HTTP error", status_code=exc.status_code, detail=exc.detail)
    return _error_json(request_id, exc.status_code, str(exc.detail))


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report the first malformed body field as a 400 ``validation_error``."""
    request_id = _request_id(request)
    errors = exc.errors()
    first = errors[0] if errors else {}
    names = [part for part in first.get("loc", ()) if isinstance(part, str)]
    field = names[-1] if names else "body"
    message = f"{field}: {first.get('msg', 'invalid value')}"

    logger.warning("Request body rejected", field=field, errors=len(errors))
    return _error_json(
        request_id,
        status.HTTP_400_BAD_REQUEST,
        message,
        {"field": field},
        ValidationError.error_type,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log with traceback, never leak internals to the caller."""
    request_id = _request_id(request)
    logger.error(
        "Unhandled exception",
        exception=exc.__class__.__name__,
        error=str(exc),
        exc_info=True,
    )
    return _error_json(
        request_id,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        error_type=JobFlowException.error_type,
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id, reusing the caller's if sent."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        add_request_context(
            request_id=request_id, method=request.method, path=request.url.path
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
