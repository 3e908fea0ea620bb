"""Standard deployment steps and the setup, deploy and rollback tasks.

The application is deployed to a single directory holding a git checkout.
There are no release folders or symlinks: each deployment is marked by a
timestamped tag on the deployed commit.
"""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING, Callable

from gitdeploy.core.logging import StructuredLogger
from gitdeploy.release.models import RollbackResult, StepRecord, TransactionResult
from gitdeploy.release.transaction import (
    Step,
    StepContext,
    Transaction,
    TransactionOrchestrator,
)

if TYPE_CHECKING:
    from gitdeploy.config import ReleaseSettings
    from gitdeploy.remote.base import RemoteGateway

logger = StructuredLogger(__name__)

RestartHook = Callable[["ReleaseSettings", "RemoteGateway"], None]
StepCallback = Callable[[str, StepRecord], None]


# clone_code: create the deploy directory and clone the repository into it


def _clone_code(ctx: StepContext) -> None:
    ctx.gateway.execute(f"mkdir -p {shlex.quote(ctx.settings.deploy_to)}")
    ctx.repository.clone(ctx.settings.repository)


def _remove_deploy_dir(ctx: StepContext, _: None) -> None:
    ctx.gateway.execute(f"rm -rf {shlex.quote(ctx.settings.deploy_to)}")


# update_code: fetch, then move HEAD to the tip of the deployment branch


def _update_code(ctx: StepContext) -> str | None:
    # snapshot before anything moves, so the compensation knows where to return
    latest_tag = ctx.tags.latest()
    ctx.repository.fetch()
    ctx.repository.reset_hard(f"origin/{ctx.settings.branch}")
    return latest_tag


def _reset_to_latest_tag(ctx: StepContext, latest_tag: str | None) -> None:
    if latest_tag:
        ctx.repository.reset_hard(latest_tag)


# tag: mark HEAD with the release tag and message


def _tag_release(ctx: StepContext) -> str:
    ctx.repository.tag(ctx.settings.release_tag, ctx.settings.release_message)
    return ctx.settings.release_tag


def _delete_release_tag(ctx: StepContext, tag: str) -> None:
    ctx.repository.delete_tag(tag)


# change_ownership: group-own everything, readable and writable by the group


def _change_ownership(ctx: StepContext) -> None:
    path = shlex.quote(ctx.settings.deploy_to)
    group = shlex.quote(ctx.settings.application_group)
    ctx.gateway.execute(f"chown -R :{group} {path}", sudo=ctx.settings.use_sudo)
    ctx.gateway.execute(f"chmod -R g+srw {path}", sudo=ctx.settings.use_sudo)


CLONE_CODE = Step(
    "clone_code",
    _clone_code,
    description="Create the deploy directory and clone the repository",
).compensated_by(_remove_deploy_dir)

UPDATE_CODE = Step(
    "update_code",
    _update_code,
    description="Fetch and reset the working tree to the deployment branch",
).compensated_by(_reset_to_latest_tag)

TAG_RELEASE = Step(
    "tag",
    _tag_release,
    description="Tag HEAD with the release tag",
).compensated_by(_delete_release_tag)

CHANGE_OWNERSHIP = Step(
    "change_ownership",
    _change_ownership,
    description="Give the application group ownership of the deploy directory",
)


def setup_transaction() -> Transaction:
    """Prepare a host: clone the repository and fix ownership."""
    return Transaction("setup").step(CLONE_CODE).step(CHANGE_OWNERSHIP)


def deploy_transaction() -> Transaction:
    """Ship the tip of the deployment branch and tag it."""
    return Transaction("deploy").step(UPDATE_CODE).step(CHANGE_OWNERSHIP).step(TAG_RELEASE)


def setup(
    settings: "ReleaseSettings",
    gateway: "RemoteGateway",
    on_step: StepCallback | None = None,
) -> TransactionResult:
    """Prepare a host for deployment.

    Args:
        settings: Release settings
        gateway: Gateway for the target host
        on_step: Optional step status callback

    Returns:
        Committed TransactionResult

    Raises:
        TransactionRolledBack: If a step failed and the host was rolled back
    """
    orchestrator = TransactionOrchestrator(settings, gateway, on_step=on_step)
    return orchestrator.run(setup_transaction()).raise_for_status()


def restart(settings: "ReleaseSettings", gateway: "RemoteGateway") -> bool:
    """Restart the application by running the configured restart command.

    Returns:
        True if a restart command ran, False if none is configured
    """
    if not settings.restart_command:
        logger.info("No restart command configured", host=gateway.host)
        return False

    logger.info("Restarting application", host=gateway.host, application=settings.application)
    gateway.execute(settings.restart_command)
    return True


def deploy(
    settings: "ReleaseSettings",
    gateway: "RemoteGateway",
    restart_hook: RestartHook | None = restart,
    on_step: StepCallback | None = None,
) -> TransactionResult:
    """Deploy the latest application code to a host.

    The restart hook runs only once the transaction has committed.

    Args:
        settings: Release settings
        gateway: Gateway for the target host
        restart_hook: Called after a committed deploy; None to skip
        on_step: Optional step status callback

    Returns:
        Committed TransactionResult

    Raises:
        TransactionRolledBack: If a step failed and the host was rolled back
        RemoteCommandFailure: If the restart hook failed after commit
    """
    orchestrator = TransactionOrchestrator(settings, gateway, on_step=on_step)
    result = orchestrator.run(deploy_transaction()).raise_for_status()

    if restart_hook is not None:
        restart_hook(settings, gateway)
    return result


def rollback(settings: "ReleaseSettings", gateway: "RemoteGateway") -> RollbackResult:
    """Roll a host back to the previous release.

    The latest release tag is deleted and HEAD is reset to the release
    before it, if there is one. Without any release tag this does nothing.

    Args:
        settings: Release settings
        gateway: Gateway for the target host

    Returns:
        RollbackResult describing what changed
    """
    ctx = StepContext(settings=settings, gateway=gateway)
    result = RollbackResult(host=gateway.host)

    latest_tag = ctx.tags.latest()
    if latest_tag is None:
        logger.info("No release to roll back", host=gateway.host)
        return result

    ctx.repository.delete_tag(latest_tag)
    result.deleted_tag = latest_tag

    previous_tag = ctx.tags.previous(latest_tag)
    if previous_tag:
        ctx.repository.reset_hard(previous_tag)
        result.reset_to = previous_tag

    logger.info(
        "Rolled back release",
        host=gateway.host,
        deleted=latest_tag,
        reset_to=previous_tag or "-",
    )
    return result


def list_releases(settings: "ReleaseSettings", gateway: "RemoteGateway") -> list[str]:
    """List release tags on a host, newest first."""
    ctx = StepContext(settings=settings, gateway=gateway)
    return list(reversed(ctx.tags.list_tags()))
