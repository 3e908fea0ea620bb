"""Main CLI entry point for gitdeploy."""

import sys
from typing import Any

import click
from rich.console import Console

from gitdeploy import __version__
from gitdeploy.config import load_config
from gitdeploy.core.context import GitDeployContext, pass_context
from gitdeploy.core.output import OutputFormat
from gitdeploy.core.exceptions import GitDeployError, ConfigError


CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 120,
}


class OutputFormatType(click.ParamType):
    """Custom Click parameter type for output format."""

    name = "format"

    def convert(
        self,
        value: Any,
        param: click.Parameter | None,
        ctx: click.Context | None,
    ) -> OutputFormat:
        if isinstance(value, OutputFormat):
            return value
        try:
            return OutputFormat(value.lower())
        except ValueError:
            self.fail(
                f"Invalid format '{value}'. Choose from: table, json, yaml, raw",
                param,
                ctx,
            )


OUTPUT_FORMAT = OutputFormatType()


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console = Console()
    console.print(f"gitdeploy version {__version__}")
    ctx.exit()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-p",
    "--profile",
    metavar="NAME",
    envvar="GITDEPLOY_PROFILE",
    help="Configuration profile (deployment stage) to use",
)
@click.option(
    "-o",
    "--output",
    "output_format",
    type=OUTPUT_FORMAT,
    metavar="FORMAT",
    help="Output format: table, json, yaml, raw",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v for info, -vv for debug)",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Suppress non-essential output",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show the commands that would run without changing any host",
)
@click.option(
    "--no-color",
    is_flag=True,
    help="Disable colored output",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True),
    metavar="FILE",
    envvar="GITDEPLOY_CONFIG",
    help="Path to config file",
)
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit",
)
@click.pass_context
def cli(
    ctx: click.Context,
    profile: str | None,
    output_format: OutputFormat | None,
    verbose: int,
    quiet: bool,
    dry_run: bool,
    no_color: bool,
    config_file: str | None,
) -> None:
    """gitdeploy - deploy applications straight from a git checkout.

    Each host keeps a single clone of the repository. A deployment resets
    it to the deployment branch and tags the commit with a timestamped
    release tag; a rollback deletes that tag and resets to the previous one.

    \b
    Examples:
        gitdeploy setup
        gitdeploy deploy
        gitdeploy rollback
        gitdeploy -p staging releases

    \b
    Configuration:
        ~/.gitdeploy/config.yaml    User configuration
        ./gitdeploy.yaml            Project configuration
        GITDEPLOY_*                 Environment variables
    """
    try:
        config = load_config(config_file, profile)

        ctx.obj = GitDeployContext(
            config=config,
            profile=profile,
            output_format=output_format,
            verbose=verbose,
            quiet=quiet,
            dry_run=dry_run,
            color=not no_color,
        )

        if ctx.obj.dry_run and not quiet:
            ctx.obj.output.print_warning("Dry-run mode enabled - no changes will be made")

    except ConfigError as e:
        console = Console(stderr=True)
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)


def register_commands() -> None:
    """Register all commands."""
    from gitdeploy.commands.release import deploy, releases, restart, rollback, setup

    cli.add_command(setup)
    cli.add_command(deploy)
    cli.add_command(rollback)
    cli.add_command(restart)
    cli.add_command(releases)


register_commands()


@cli.command()
@pass_context
def config(ctx: GitDeployContext) -> None:
    """Show the resolved release settings and hosts."""
    try:
        settings = ctx.settings
    except ConfigError as e:
        ctx.output.print_error(f"Configuration error: {e}")
        raise click.Abort()

    config_data = {
        "profile": ctx.profile_name,
        "dry_run": ctx.dry_run,
        **settings.model_dump(),
        "hosts": ", ".join(h.address for h in ctx.profile.hosts) or "-",
    }
    ctx.output.print_data(config_data, title="Current Configuration")


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except GitDeployError as e:
        console = Console(stderr=True)
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console = Console(stderr=True)
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
