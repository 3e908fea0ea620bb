"""Transaction data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from gitdeploy.core.exceptions import CompensationFailure, TransactionRolledBack


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionStatus(str, Enum):
    """Transaction lifecycle states."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class StepStatus(str, Enum):
    """Step lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    COMPENSATED = "compensated"
    COMPENSATION_FAILED = "compensation_failed"


@dataclass
class StepRecord:
    """Execution record for one step of a transaction run."""

    name: str
    status: StepStatus = StepStatus.PENDING
    value: Any = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "status": self.status.value,
            "error": self.error,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class CompensationRecord:
    """Outcome of one compensating action."""

    step: str
    succeeded: bool
    error: CompensationFailure | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "step": self.step,
            "succeeded": self.succeeded,
            "error": str(self.error) if self.error else None,
        }


@dataclass
class TransactionResult:
    """Result of running a transaction on one host."""

    transaction: str
    host: str
    status: TransactionStatus = TransactionStatus.NOT_STARTED
    steps: list[StepRecord] = field(default_factory=list)
    compensations: list[CompensationRecord] = field(default_factory=list)
    failed_step: str | None = None
    failure: BaseException | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def start(self) -> None:
        self.status = TransactionStatus.RUNNING
        self.started_at = _utcnow()

    def commit(self) -> None:
        self.status = TransactionStatus.COMMITTED
        self.completed_at = _utcnow()

    def roll_back(self) -> None:
        self.status = TransactionStatus.ROLLED_BACK
        self.completed_at = _utcnow()

    @property
    def committed(self) -> bool:
        return self.status == TransactionStatus.COMMITTED

    @property
    def compensation_failures(self) -> list[CompensationFailure]:
        """Errors raised by compensating actions, in the order they ran."""
        return [c.error for c in self.compensations if c.error is not None]

    @property
    def compensated_steps(self) -> list[str]:
        """Names of steps whose compensation was attempted, in call order."""
        return [c.step for c in self.compensations]

    @property
    def succeeded_steps(self) -> list[str]:
        return [
            s.name
            for s in self.steps
            if s.status in (StepStatus.SUCCEEDED, StepStatus.COMPENSATED, StepStatus.COMPENSATION_FAILED)
        ]

    @property
    def duration_seconds(self) -> float | None:
        """Get run duration in seconds."""
        if self.started_at:
            end = self.completed_at or _utcnow()
            return (end - self.started_at).total_seconds()
        return None

    def step(self, name: str) -> StepRecord | None:
        for record in self.steps:
            if record.name == name:
                return record
        return None

    def raise_for_status(self) -> "TransactionResult":
        """Raise if the transaction was rolled back.

        Raises:
            TransactionRolledBack: Chained from the original step failure
        """
        if self.status == TransactionStatus.ROLLED_BACK:
            raise TransactionRolledBack(self) from self.failure
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "transaction": self.transaction,
            "host": self.host,
            "status": self.status.value,
            "failed_step": self.failed_step,
            "failure": str(self.failure) if self.failure else None,
            "steps": [s.to_dict() for s in self.steps],
            "compensations": [c.to_dict() for c in self.compensations],
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class RollbackResult:
    """Result of rolling back to the previous release on one host."""

    host: str
    deleted_tag: str | None = None
    reset_to: str | None = None

    @property
    def noop(self) -> bool:
        return self.deleted_tag is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "host": self.host,
            "deleted_tag": self.deleted_tag,
            "reset_to": self.reset_to,
        }
