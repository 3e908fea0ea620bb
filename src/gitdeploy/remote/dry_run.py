"""Gateway that shows mutating commands instead of running them."""

from typing import Callable

from gitdeploy.remote.base import CommandResult, RemoteGateway


class DryRunGateway(RemoteGateway):
    """Records commands without changing the host.

    Read-only commands are passed to ``inner`` when one is given, so tag
    lookups still reflect the real repository. Everything else is recorded,
    reported through ``on_command`` and treated as successful.
    """

    def __init__(
        self,
        host: str,
        inner: RemoteGateway | None = None,
        on_command: Callable[[str, str], None] | None = None,
    ):
        super().__init__(host)
        self.inner = inner
        self.on_command = on_command
        self.commands: list[str] = []

    def run(
        self,
        command: str,
        *,
        sudo: bool = False,
        readonly: bool = False,
        timeout: int | None = None,
    ) -> CommandResult:
        if readonly and self.inner is not None:
            return self.inner.run(command, sudo=sudo, readonly=True, timeout=timeout)

        actual_command = self.with_sudo(command, sudo)
        self.commands.append(actual_command)
        if self.on_command:
            self.on_command(self.host, actual_command)
        return CommandResult(command=command, stdout="", stderr="", exit_status=0)

    def close(self) -> None:
        if self.inner is not None:
            self.inner.close()
