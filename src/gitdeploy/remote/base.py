"""Base remote command gateway."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from gitdeploy.core.exceptions import RemoteCommandFailure
from gitdeploy.core.logging import StructuredLogger

logger = StructuredLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one command run on a host."""

    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "command": self.command,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_status": self.exit_status,
        }


class RemoteGateway(ABC):
    """Abstract base class for executing commands on a target host."""

    def __init__(self, host: str, timeout: int | None = None):
        """Initialize gateway.

        Args:
            host: Name of the host commands run on
            timeout: Default per-command timeout in seconds
        """
        self.host = host
        self.timeout = timeout

    def __enter__(self) -> "RemoteGateway":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @abstractmethod
    def run(
        self,
        command: str,
        *,
        sudo: bool = False,
        readonly: bool = False,
        timeout: int | None = None,
    ) -> CommandResult:
        """Run a shell command on the host.

        Args:
            command: Shell command line
            sudo: Run the command through sudo
            readonly: The command does not change anything on the host
            timeout: Timeout in seconds, overriding the gateway default

        Returns:
            CommandResult, whatever the exit status
        """
        pass

    def close(self) -> None:
        """Release any connection held by the gateway."""
        pass

    def execute(
        self,
        command: str,
        *,
        sudo: bool = False,
        readonly: bool = False,
        timeout: int | None = None,
    ) -> CommandResult:
        """Run a command and raise if it does not succeed.

        Raises:
            RemoteCommandFailure: If the command exits non-zero
        """
        logger.debug("Running command", host=self.host, command=command, sudo=sudo)
        result = self.run(command, sudo=sudo, readonly=readonly, timeout=timeout)
        if not result.ok:
            detail = result.stderr.strip() or result.stdout.strip()
            message = f"Command failed on {self.host} with exit status {result.exit_status}: {command}"
            if detail:
                message = f"{message}: {detail}"
            raise RemoteCommandFailure(
                message,
                command=command,
                host=self.host,
                exit_status=result.exit_status,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    @staticmethod
    def with_sudo(command: str, sudo: bool) -> str:
        if sudo:
            return f"sudo {command}"
        return command
