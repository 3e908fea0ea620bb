"""Transactional execution of deployment steps.

A transaction is an ordered list of steps. Each step pairs a forward action
with an optional compensating action. When a step fails, the compensations
of the steps that already succeeded run in reverse order and the original
failure is reported.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Iterator

from gitdeploy.core.exceptions import CompensationFailure
from gitdeploy.core.logging import StructuredLogger
from gitdeploy.release.git import GitRepository
from gitdeploy.release.models import (
    CompensationRecord,
    StepRecord,
    StepStatus,
    TransactionResult,
)
from gitdeploy.release.tags import TagResolver

if TYPE_CHECKING:
    from gitdeploy.config import ReleaseSettings
    from gitdeploy.remote.base import RemoteGateway

logger = StructuredLogger(__name__)


@dataclass
class StepContext:
    """What a step may use while it runs on one host."""

    settings: "ReleaseSettings"
    gateway: "RemoteGateway"
    repository: GitRepository = field(init=False)
    tags: TagResolver = field(init=False)

    def __post_init__(self) -> None:
        self.repository = GitRepository(self.gateway, self.settings.deploy_to)
        self.tags = TagResolver(self.repository, self.settings.release_tag_format)

    @property
    def host(self) -> str:
        return self.gateway.host


StepAction = Callable[[StepContext], Any]
Compensation = Callable[[StepContext, Any], None]


@dataclass(frozen=True)
class Step:
    """A unit of work with an optional compensating action.

    The forward action's return value is handed to the compensation, so a
    step can record what it needs to undo itself (a tag name, a snapshot of
    the previous release).
    """

    name: str
    action: StepAction
    compensation: Compensation | None = None
    description: str = ""

    def compensated_by(self, compensation: Compensation) -> "Step":
        """Return a copy of this step with a compensating action."""
        return replace(self, compensation=compensation)

    @property
    def compensable(self) -> bool:
        return self.compensation is not None


class Transaction:
    """An ordered, named list of steps."""

    def __init__(self, name: str, steps: list[Step] | None = None):
        self.name = name
        self._steps: list[Step] = list(steps or [])

    def step(self, step: Step) -> "Transaction":
        """Append a step and return the transaction for chaining."""
        self._steps.append(step)
        return self

    def add(
        self,
        name: str,
        action: StepAction,
        compensation: Compensation | None = None,
    ) -> "Transaction":
        """Append a step built from an action and an optional compensation."""
        return self.step(Step(name=name, action=action, compensation=compensation))

    @property
    def steps(self) -> tuple[Step, ...]:
        return tuple(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        return f"Transaction({self.name!r}, steps={[s.name for s in self._steps]})"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TransactionOrchestrator:
    """Runs transactions on one host."""

    def __init__(
        self,
        settings: "ReleaseSettings",
        gateway: "RemoteGateway",
        on_step: Callable[[str, StepRecord], None] | None = None,
    ):
        """Initialize orchestrator.

        Args:
            settings: Release settings shared by every step
            gateway: Gateway for the host the transaction runs on
            on_step: Callback invoked with (host, record) whenever a step
                changes state
        """
        self._settings = settings
        self._gateway = gateway
        self._on_step = on_step

    def run(self, transaction: Transaction) -> TransactionResult:
        """Run every step of a transaction in order.

        A step failure stops forward progress. Steps that already succeeded
        and declare a compensation are then compensated in reverse order;
        a failing compensation is recorded and the remaining ones still run.

        Args:
            transaction: Transaction to run

        Returns:
            TransactionResult, committed or rolled back
        """
        context = StepContext(settings=self._settings, gateway=self._gateway)
        result = TransactionResult(transaction=transaction.name, host=self._gateway.host)
        log = logger.bind(transaction=transaction.name, host=self._gateway.host)

        result.start()
        log.info("Transaction started", steps=len(transaction))

        completed: list[tuple[Step, StepRecord]] = []
        for step in transaction:
            record = StepRecord(name=step.name, status=StepStatus.RUNNING, started_at=_now())
            result.steps.append(record)
            self._notify(record)

            try:
                record.value = step.action(context)
            except Exception as e:
                record.status = StepStatus.FAILED
                record.error = str(e)
                record.completed_at = _now()
                self._notify(record)

                result.failed_step = step.name
                result.failure = e
                log.error("Step failed", step=step.name, error=str(e))

                self._compensate(completed, context, result, log)
                result.roll_back()
                log.warning("Transaction rolled back", failed_step=step.name)
                return result

            record.status = StepStatus.SUCCEEDED
            record.completed_at = _now()
            self._notify(record)
            completed.append((step, record))
            log.info("Step succeeded", step=step.name)

        result.commit()
        log.info("Transaction committed")
        return result

    def _compensate(
        self,
        completed: list[tuple[Step, StepRecord]],
        context: StepContext,
        result: TransactionResult,
        log: StructuredLogger,
    ) -> None:
        """Run compensations for completed steps, newest first."""
        for step, record in reversed(completed):
            if step.compensation is None:
                continue

            log.info("Compensating step", step=step.name)
            try:
                step.compensation(context, record.value)
            except Exception as e:
                failure = CompensationFailure(step.name, e)
                result.compensations.append(
                    CompensationRecord(step=step.name, succeeded=False, error=failure)
                )
                record.status = StepStatus.COMPENSATION_FAILED
                record.error = str(e)
                log.error("Compensation failed", step=step.name, error=str(e))
            else:
                result.compensations.append(CompensationRecord(step=step.name, succeeded=True))
                record.status = StepStatus.COMPENSATED
            self._notify(record)

    def _notify(self, record: StepRecord) -> None:
        """Send step status notification."""
        if self._on_step:
            try:
                self._on_step(self._gateway.host, record)
            except Exception as e:
                logger.warning(f"Step notification failed: {e}")
