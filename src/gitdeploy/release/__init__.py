"""Transactional release engine."""

from gitdeploy.release.models import (
    RollbackResult,
    StepRecord,
    StepStatus,
    TransactionResult,
    TransactionStatus,
)
from gitdeploy.release.tags import TagResolver, generate_release_tag, release_tag_pattern
from gitdeploy.release.transaction import Step, StepContext, Transaction, TransactionOrchestrator
from gitdeploy.release.tasks import deploy, list_releases, restart, rollback, setup

__all__ = [
    "RollbackResult",
    "Step",
    "StepContext",
    "StepRecord",
    "StepStatus",
    "TagResolver",
    "Transaction",
    "TransactionOrchestrator",
    "TransactionResult",
    "TransactionStatus",
    "deploy",
    "generate_release_tag",
    "list_releases",
    "release_tag_pattern",
    "restart",
    "rollback",
    "setup",
]
