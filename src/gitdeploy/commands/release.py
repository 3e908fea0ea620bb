"""Release commands - setup, deploy, rollback, restart, releases."""

from typing import Any, Callable

import click
from rich.markup import escape
from rich.table import Table

from gitdeploy.core.context import pass_context, GitDeployContext
from gitdeploy.core.exceptions import GitDeployError, TransactionRolledBack
from gitdeploy.core.output import OutputFormat, format_duration
from gitdeploy.release import tasks
from gitdeploy.release.hosts import HostResult, run_on_hosts
from gitdeploy.release.models import StepRecord, StepStatus

host_option = click.option(
    "-H",
    "--host",
    "hosts",
    multiple=True,
    metavar="HOST",
    help="Only run on this host (repeatable)",
)

_STEP_STYLES = {
    StepStatus.RUNNING: "[dim]running[/dim]",
    StepStatus.SUCCEEDED: "[green]ok[/green]",
    StepStatus.FAILED: "[red]failed[/red]",
    StepStatus.COMPENSATED: "[yellow]rolled back[/yellow]",
    StepStatus.COMPENSATION_FAILED: "[red]rollback failed[/red]",
}


def _step_printer(ctx: GitDeployContext) -> Callable[[str, StepRecord], None]:
    """Build a callback printing step progress per host."""

    def report(host: str, record: StepRecord) -> None:
        status = _STEP_STYLES.get(record.status)
        if status:
            ctx.output.print(f"  [cyan]{escape(host)}[/cyan] {record.name}: {status}")

    return report


def _run(
    ctx: GitDeployContext,
    hosts: tuple[str, ...],
    task: Callable[[Any], Any],
) -> list[HostResult[Any]]:
    """Run a task on the selected hosts."""
    targets = ctx.select_hosts(hosts)
    return run_on_hosts(
        targets,
        task,
        ctx.gateway_for,
        max_parallel=ctx.config.global_settings.max_parallel,
    )


def _describe(value: Any) -> str:
    if isinstance(value, bool):
        return "restarted" if value else "no restart command"
    if hasattr(value, "status"):
        return value.status.value
    if hasattr(value, "noop"):
        if value.noop:
            return "nothing to roll back"
        if value.reset_to:
            return f"deleted {value.deleted_tag}, reset to {value.reset_to}"
        return f"deleted {value.deleted_tag}, no previous release"
    return ""


def _report(ctx: GitDeployContext, title: str, results: list[HostResult[Any]]) -> None:
    """Print a per-host summary and abort if any host failed."""
    if ctx.output_format != OutputFormat.TABLE:
        ctx.output.print_data([r.to_dict() for r in results], title=title)
    else:
        table = Table(title=title)
        table.add_column("Host", style="cyan")
        table.add_column("Status", justify="center")
        table.add_column("Detail")
        table.add_column("Duration", justify="right")

        for result in results:
            if result.success:
                status = "[green]OK[/green]"
                detail = _describe(result.value)
            else:
                status = "[red]FAIL[/red]"
                detail = escape(result.error_message or "")
            table.add_row(escape(result.host), status, detail, format_duration(result.duration))

        ctx.output.print_renderable(table)

    failed = [r for r in results if not r.success]
    for result in failed:
        error = result.error
        ctx.output.print_error(escape(f"{result.host}: {error}"))
        if isinstance(error, TransactionRolledBack):
            for compensation in error.result.compensations:
                if compensation.succeeded:
                    ctx.output.print(f"  [yellow]↺[/yellow] {compensation.step} rolled back")
                else:
                    ctx.output.print_error(f"  {escape(str(compensation.error))}")

    if failed:
        raise click.Abort()


@click.command("setup")
@host_option
@pass_context
def setup(ctx: GitDeployContext, hosts: tuple[str, ...]) -> None:
    """Prepare servers for deployment.

    Creates the deploy directory, clones the repository into it and gives
    the application group ownership.

    \b
    Examples:
        gitdeploy setup
        gitdeploy -p production setup -H app1.example.com
    """
    try:
        settings = ctx.settings
        ctx.output.print_info(f"Setting up {settings.application} in {settings.deploy_to}")
        results = _run(ctx, hosts, lambda gw: tasks.setup(settings, gw, on_step=_step_printer(ctx)))
    except GitDeployError as e:
        ctx.output.print_error(f"Setup failed: {e}")
        raise click.Abort()

    _report(ctx, "Setup", results)
    ctx.output.print_success("Setup complete")


@click.command("deploy")
@host_option
@click.option("--no-restart", is_flag=True, help="Do not restart the application afterwards")
@pass_context
def deploy(ctx: GitDeployContext, hosts: tuple[str, ...], no_restart: bool) -> None:
    """Deploy the latest application code.

    Fetches the repository, resets it to the deployment branch, fixes
    ownership and tags the release. Any failure rolls the host back.

    \b
    Examples:
        gitdeploy deploy
        gitdeploy -p staging deploy --no-restart
    """
    restart_hook = None if no_restart else tasks.restart
    try:
        settings = ctx.settings
        ctx.output.print_info(
            f"Deploying {settings.application} ({settings.branch}) as release {settings.release_tag}"
        )
        results = _run(
            ctx,
            hosts,
            lambda gw: tasks.deploy(settings, gw, restart_hook=restart_hook, on_step=_step_printer(ctx)),
        )
    except GitDeployError as e:
        ctx.output.print_error(f"Deploy failed: {e}")
        raise click.Abort()

    _report(ctx, "Deploy", results)
    ctx.output.print_success(f"Released {settings.release_tag}")


@click.command("rollback")
@host_option
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation")
@pass_context
def rollback(ctx: GitDeployContext, hosts: tuple[str, ...], yes: bool) -> None:
    """Rollback to the previous release.

    Deletes the latest release tag and resets the checkout to the release
    before it.

    \b
    Examples:
        gitdeploy rollback
        gitdeploy rollback -y -H app1.example.com
    """
    try:
        settings = ctx.settings
        targets = ctx.select_hosts(hosts)

        if not yes and not ctx.confirm(
            f"Rollback {settings.application} on {len(targets)} host(s)?"
        ):
            ctx.output.print_info("Cancelled")
            return

        results = _run(ctx, hosts, lambda gw: tasks.rollback(settings, gw))
    except GitDeployError as e:
        ctx.output.print_error(f"Rollback failed: {e}")
        raise click.Abort()

    _report(ctx, "Rollback", results)


@click.command("restart")
@host_option
@pass_context
def restart(ctx: GitDeployContext, hosts: tuple[str, ...]) -> None:
    """Restart the application using the configured restart command.

    \b
    Examples:
        gitdeploy restart
    """
    try:
        settings = ctx.settings
        if not settings.restart_command:
            ctx.output.print_warning("No restart_command configured, nothing to do")
            return
        results = _run(ctx, hosts, lambda gw: tasks.restart(settings, gw))
    except GitDeployError as e:
        ctx.output.print_error(f"Restart failed: {e}")
        raise click.Abort()

    _report(ctx, "Restart", results)


@click.command("releases")
@host_option
@click.option("--limit", default=10, show_default=True, help="Max releases per host")
@pass_context
def releases(ctx: GitDeployContext, hosts: tuple[str, ...], limit: int) -> None:
    """List releases on each host, newest first.

    \b
    Examples:
        gitdeploy releases
        gitdeploy -o json releases --limit 3
    """
    try:
        settings = ctx.settings
        results = _run(ctx, hosts, lambda gw: tasks.list_releases(settings, gw))
    except GitDeployError as e:
        ctx.output.print_error(f"Failed to list releases: {e}")
        raise click.Abort()

    rows: list[dict[str, Any]] = []
    for result in results:
        if not result.success:
            continue
        for i, tag in enumerate((result.value or [])[:limit]):
            rows.append({"host": result.host, "release": tag, "latest": i == 0})

    failed = [r for r in results if not r.success]
    for result in failed:
        ctx.output.print_error(escape(f"{result.host}: {result.error}"))

    if rows:
        ctx.output.print_data(rows, headers=["host", "release", "latest"], title="Releases")
    elif not failed:
        ctx.output.print_info("No releases found")

    if failed:
        raise click.Abort()
