"""Gateway running commands on the local machine."""

import subprocess

from gitdeploy.remote.base import CommandResult, RemoteGateway


class LocalGateway(RemoteGateway):
    """Runs commands through the local shell."""

    def __init__(self, host: str = "localhost", timeout: int | None = None, shell: str = "/bin/sh"):
        super().__init__(host, timeout)
        self.shell = shell

    def run(
        self,
        command: str,
        *,
        sudo: bool = False,
        readonly: bool = False,
        timeout: int | None = None,
    ) -> CommandResult:
        actual_command = self.with_sudo(command, sudo)
        try:
            process = subprocess.run(
                [self.shell, "-c", actual_command],
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=command,
                stdout="",
                stderr=f"Command timed out after {timeout or self.timeout} seconds",
                exit_status=-1,
            )

        return CommandResult(
            command=command,
            stdout=process.stdout,
            stderr=process.stderr,
            exit_status=process.returncode,
        )
