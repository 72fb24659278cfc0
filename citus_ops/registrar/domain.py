from __future__ import annotations

from enum import StrEnum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .topology import WorkerEndpoint


class WorkerState(StrEnum):
    """Per-worker registration states, in the order a worker moves through them."""

    WAITING_REACHABLE = "waiting_reachable"
    CHECKING_EXISTING = "checking_existing"
    SANITIZING = "sanitizing"
    REGISTERING = "registering"
    SKIPPED = "skipped"
    REGISTERED = "registered"
    FAILED = "failed"


class WorkerOutcome(StrEnum):
    SKIPPED = "skipped"
    REGISTERED = "registered"
    FAILED = "failed"


class RunStatus(StrEnum):
    PREFLIGHT_SKIPPED = "preflight_skipped"
    EXTENSION_DEFERRED = "extension_deferred"
    COMPLETED = "completed"


class WorkerResult(BaseModel):
    """Terminal state of one worker after reconciliation."""

    model_config = ConfigDict(frozen=True)

    endpoint: WorkerEndpoint
    outcome: WorkerOutcome
    reason: str | None = None
    attempts: int = Field(default=0, ge=0, description="add-node attempts issued for this worker")
    node_id: int | None = None

    @classmethod
    def skipped(cls: type[Self], endpoint: WorkerEndpoint, reason: str) -> Self:
        return cls(endpoint=endpoint, outcome=WorkerOutcome.SKIPPED, reason=reason)

    @classmethod
    def registered(cls: type[Self], endpoint: WorkerEndpoint, node_id: int, attempts: int) -> Self:
        return cls(endpoint=endpoint, outcome=WorkerOutcome.REGISTERED, node_id=node_id, attempts=attempts)

    @classmethod
    def failed(cls: type[Self], endpoint: WorkerEndpoint, reason: str, attempts: int) -> Self:
        return cls(endpoint=endpoint, outcome=WorkerOutcome.FAILED, reason=reason, attempts=attempts)


class RunSummary(BaseModel):
    """Outcome of one registrar run.

    The process always exits 0; this is what tests and logs look at instead.
    """

    model_config = ConfigDict(frozen=True)

    status: RunStatus
    results: tuple[WorkerResult, ...] = Field(default_factory=tuple)
    message: str | None = None

    @classmethod
    def preflight_skipped(cls: type[Self], message: str) -> Self:
        return cls(status=RunStatus.PREFLIGHT_SKIPPED, message=message)

    @classmethod
    def extension_deferred(cls: type[Self], message: str) -> Self:
        return cls(status=RunStatus.EXTENSION_DEFERRED, message=message)

    @classmethod
    def completed(cls: type[Self], results: tuple[WorkerResult, ...]) -> Self:
        return cls(status=RunStatus.COMPLETED, results=results)

    def _count(self, outcome: WorkerOutcome) -> int:
        return sum(1 for result in self.results if result.outcome == outcome)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def registered_count(self) -> int:
        return self._count(WorkerOutcome.REGISTERED)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def skipped_count(self) -> int:
        return self._count(WorkerOutcome.SKIPPED)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed_count(self) -> int:
        return self._count(WorkerOutcome.FAILED)
