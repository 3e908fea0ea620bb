"""Git operations against a repository checked out on a target host."""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitdeploy.remote.base import CommandResult, RemoteGateway


class GitRepository:
    """Issues git commands for one deploy path through a gateway."""

    def __init__(self, gateway: "RemoteGateway", path: str, git_binary: str = "git"):
        self.gateway = gateway
        self.path = path
        self.git_binary = git_binary

    def _git(self, *args: str, readonly: bool = False) -> "CommandResult":
        command = " ".join(
            [self.git_binary, "-C", shlex.quote(self.path), *(shlex.quote(a) for a in args)]
        )
        return self.gateway.execute(command, readonly=readonly)

    def clone(self, repository: str) -> None:
        """Clone ``repository`` into the deploy path."""
        self.gateway.execute(
            f"{self.git_binary} clone {shlex.quote(repository)} {shlex.quote(self.path)}"
        )

    def fetch(self) -> None:
        self._git("fetch")

    def reset_hard(self, ref: str) -> None:
        """Point HEAD and the working tree at ``ref``."""
        self._git("reset", "--hard", ref)

    def tag(self, name: str, message: str) -> None:
        """Create an annotated tag at HEAD."""
        self._git("tag", name, "-m", message)

    def delete_tag(self, name: str) -> None:
        self._git("tag", "-d", name)

    def list_tags(self) -> list[str]:
        """List every tag in the repository."""
        result = self._git("tag", "-l", readonly=True)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]
