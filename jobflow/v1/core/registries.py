from typing import Any, Generic, Protocol, TypeVar

T = TypeVar("T")


class Registry(Generic[T]):
    """Named implementations of one kind, optionally sealed after startup."""

    def __init__(self, kind: str):
        self.kind = kind
        self._entries: dict[str, T] = {}
        self.frozen = False

    def register(self, key: str, implementation: T) -> None:
        if self.frozen:
            raise RuntimeError(f"{self.kind} registry is frozen, cannot add '{key}'")
        self._entries[key] = implementation

    def get(self, key: str) -> T:
        try:
            return self._entries[key]
        except KeyError:
            raise KeyError(f"no {self.kind} registered for '{key}'") from None

    def names(self) -> list[str]:
        return sorted(self._entries)

    def freeze(self) -> None:
        self.frozen = True


class JobProcessor(Protocol):
    """The unit of work a worker runs for one job type."""

    async def process(
        self, job_id: str, name: str, config: dict[str, Any] | None
    ) -> None:
        """
        Run the work for a job.

        Raises:
            Exception: any exception is recorded as the job's failure
        """
        ...


class ProcessorRegistry(Registry[JobProcessor]):
    """Processors keyed by job type (process, analyze, export)."""

    def __init__(self):
        super().__init__("processor")
