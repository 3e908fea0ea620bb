"""Click context object for sharing state across commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click
from rich.markup import escape

from gitdeploy.config import GitDeployConfig, HostConfig, ProfileConfig, ReleaseSettings, get_default_config
from gitdeploy.core.exceptions import ConfigError
from gitdeploy.core.output import OutputFormat, OutputFormatter
from gitdeploy.core.logging import LogLevel, setup_logging

if TYPE_CHECKING:
    from gitdeploy.remote.base import RemoteGateway


class GitDeployContext:
    """Shared context object for gitdeploy commands.

    This object is passed through Click's context mechanism and provides
    access to configuration, release settings, gateways and output.
    """

    def __init__(
        self,
        config: GitDeployConfig | None = None,
        profile: str | None = None,
        output_format: OutputFormat | None = None,
        verbose: int = 0,
        quiet: bool = False,
        dry_run: bool = False,
        color: bool = True,
    ):
        self._config = config or get_default_config()
        self._profile_name = profile or "default"

        # Output settings (CLI overrides config)
        self._output_format = output_format or self._config.global_settings.output_format
        self._verbose = verbose
        self._quiet = quiet
        self._dry_run = dry_run or self._config.global_settings.dry_run

        if verbose >= 2:
            log_level = LogLevel.DEBUG
        elif verbose >= 1:
            log_level = LogLevel.INFO
        elif quiet:
            log_level = LogLevel.ERROR
        else:
            log_level = self._config.global_settings.verbosity

        setup_logging(log_level, rich_output=color)

        self._output = OutputFormatter(
            format=self._output_format,
            color=color,
            quiet=quiet,
        )

        self._settings: ReleaseSettings | None = None

    @property
    def config(self) -> GitDeployConfig:
        """Get the loaded configuration."""
        return self._config

    @property
    def profile(self) -> ProfileConfig:
        """Get the current profile configuration."""
        return self._config.get_profile(self._profile_name)

    @property
    def profile_name(self) -> str:
        """Get the current profile name."""
        return self._profile_name

    @property
    def settings(self) -> ReleaseSettings:
        """Get the release settings for this invocation.

        Resolved once, so every host is tagged with the same release tag.
        """
        if self._settings is None:
            self._settings = self.profile.to_settings()
        return self._settings

    @property
    def output(self) -> OutputFormatter:
        """Get the output formatter."""
        return self._output

    @property
    def output_format(self) -> OutputFormat:
        """Get the output format."""
        return self._output_format

    @property
    def dry_run(self) -> bool:
        """Check if dry-run mode is enabled."""
        return self._dry_run

    @property
    def verbose(self) -> int:
        """Get verbosity level."""
        return self._verbose

    @property
    def quiet(self) -> bool:
        """Check if quiet mode is enabled."""
        return self._quiet

    def select_hosts(self, names: tuple[str, ...] | list[str] = ()) -> list[HostConfig]:
        """Get the target hosts, optionally restricted by hostname.

        Args:
            names: Hostnames or user@host addresses to keep; empty for all

        Returns:
            Matching hosts in configuration order

        Raises:
            ConfigError: If no hosts are configured or a name is unknown
        """
        hosts = self.profile.hosts
        if not hosts:
            raise ConfigError(f"No hosts configured for profile '{self._profile_name}'")
        if not names:
            return list(hosts)

        known = {h.hostname for h in hosts} | {h.address for h in hosts}
        unknown = [n for n in names if n not in known]
        if unknown:
            raise ConfigError(f"Unknown host(s): {', '.join(unknown)}")
        return [h for h in hosts if h.hostname in names or h.address in names]

    def gateway_for(self, host: HostConfig) -> "RemoteGateway":
        """Create a gateway for a host.

        In dry-run mode, mutating commands are printed instead of run.
        """
        timeout = self._config.global_settings.command_timeout
        gateway: RemoteGateway
        if host.local:
            from gitdeploy.remote.local import LocalGateway

            gateway = LocalGateway(host.address, timeout=timeout)
        else:
            from gitdeploy.remote.ssh import SSHGateway

            gateway = SSHGateway(host, timeout=timeout)

        if self._dry_run:
            from gitdeploy.remote.dry_run import DryRunGateway

            return DryRunGateway(host.address, inner=gateway, on_command=self._print_dry_run_command)
        return gateway

    def _print_dry_run_command(self, host: str, command: str) -> None:
        self.log_dry_run(command, {"host": host})

    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask for user confirmation.

        In dry-run mode, always returns True without prompting.
        """
        if self._dry_run:
            self._output.print(f"[dim]{escape(f'[dry-run] Would prompt: {message}')}[/dim]")
            return True
        if not self._config.global_settings.confirm_destructive:
            return True
        return self._output.confirm(message, default)

    def log_dry_run(self, action: str, details: dict[str, Any] | None = None) -> None:
        """Log a dry-run action."""
        if self._dry_run:
            msg = f"[dry-run] {action}"
            if details:
                detail_str = ", ".join(f"{k}={v}" for k, v in details.items())
                msg = f"{msg} ({detail_str})"
            self._output.print(f"[dim]{escape(msg)}[/dim]")


# Click decorator for passing context
pass_context = click.make_pass_decorator(GitDeployContext, ensure=True)
