"""
Pure transition rules for the job lifecycle.

Nothing here touches the store or the queue. Callers ask which target status
an event leads to and which statuses the store must still observe at write
time for that event to apply.
"""

from dataclasses import dataclass
from enum import Enum

from jobflow.v1.core.exceptions import InvalidTransitionError, MaxRetriesReachedError
from jobflow.v1.jobs.models import MAX_RETRIES, Job, JobStatus


class JobEvent(str, Enum):
    """Things that can happen to a job."""

    WORKER_CLAIMS = "worker_claims"
    WORKER_SUCCESS = "worker_success"
    WORKER_FAILURE = "worker_failure"
    USER_CANCEL_REQUEST = "user_cancel_request"
    CANCEL_CONFIRMED = "cancel_confirmed"
    USER_RETRY = "user_retry"


@dataclass(frozen=True)
class Transition:
    """An allowed edge of the state machine."""

    source: JobStatus
    event: JobEvent
    target: JobStatus
    increments_retry: bool = False


# event -> (allowed sources, target)
_TRANSITIONS: dict[JobEvent, tuple[frozenset[JobStatus], JobStatus]] = {
    JobEvent.WORKER_CLAIMS: (frozenset({JobStatus.PENDING}), JobStatus.PROCESSING),
    JobEvent.WORKER_SUCCESS: (frozenset({JobStatus.PROCESSING}), JobStatus.COMPLETED),
    JobEvent.WORKER_FAILURE: (frozenset({JobStatus.PROCESSING}), JobStatus.FAILED),
    JobEvent.USER_CANCEL_REQUEST: (
        frozenset({JobStatus.PENDING, JobStatus.PROCESSING}),
        JobStatus.CANCELLING,
    ),
    JobEvent.CANCEL_CONFIRMED: (
        frozenset({JobStatus.PENDING, JobStatus.PROCESSING, JobStatus.CANCELLING}),
        JobStatus.CANCELLED,
    ),
    JobEvent.USER_RETRY: (frozenset({JobStatus.FAILED}), JobStatus.PENDING),
}


def can_transition(
    current: JobStatus | str, event: JobEvent, retry_count: int = 0
) -> Transition:
    """
    Decide whether ``event`` may be applied to a job in status ``current``.

    Returns:
        The allowed transition.

    Raises:
        InvalidTransitionError: no edge exists for the pair.
        MaxRetriesReachedError: a retry was requested with no retries left.
    """
    current = JobStatus(current)
    sources, target = _TRANSITIONS[event]

    if current not in sources:
        raise InvalidTransitionError(current.value, event.value)

    if event is JobEvent.USER_RETRY:
        if retry_count >= MAX_RETRIES:
            raise MaxRetriesReachedError(retry_count)
        return Transition(current, event, target, increments_retry=True)

    return Transition(current, event, target)


def expected_statuses(event: JobEvent) -> frozenset[JobStatus]:
    """Statuses the job must hold at write time for ``event`` to apply."""
    return _TRANSITIONS[event][0]


def target_status(event: JobEvent) -> JobStatus:
    return _TRANSITIONS[event][1]


def is_terminal(status: JobStatus | str) -> bool:
    """True when no worker will act on the job any more (reporting sense).

    ``failed`` counts as terminal here even if the job may still be retried;
    use ``is_final`` to ask whether any event can ever move it again.
    """
    return JobStatus(status) in (
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.CANCELLED,
    )


def is_final(status: JobStatus | str, retry_count: int) -> bool:
    """True when no event can move the job out of its current status."""
    status = JobStatus(status)
    if status is JobStatus.FAILED:
        return retry_count >= MAX_RETRIES
    return status in (JobStatus.COMPLETED, JobStatus.CANCELLED)


def is_cancellable(status: JobStatus | str) -> bool:
    return JobStatus(status) in expected_statuses(JobEvent.USER_CANCEL_REQUEST)


def is_retryable(job: Job) -> bool:
    return job.status == JobStatus.FAILED.value and job.retry_count < MAX_RETRIES
