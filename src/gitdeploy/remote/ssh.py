"""SSH gateway built on Paramiko."""

from __future__ import annotations

import socket
import time
from typing import TYPE_CHECKING, Callable

import paramiko
from paramiko.agent import AgentRequestHandler

from gitdeploy.core.exceptions import GatewayConnectionError
from gitdeploy.core.logging import StructuredLogger
from gitdeploy.remote.base import CommandResult, RemoteGateway

if TYPE_CHECKING:
    from gitdeploy.config import HostConfig

logger = StructuredLogger(__name__)

RECV_BUFFER = 32768
POLL_INTERVAL = 0.05


class SSHGateway(RemoteGateway):
    """Runs commands on a remote host over a single SSH connection.

    The connection is opened lazily on the first command and reused for
    every command after that. Each command gets its own session channel,
    with agent forwarding and a pty when the host asks for them.
    """

    def __init__(
        self,
        host_config: "HostConfig",
        timeout: int | None = None,
        *,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
    ) -> None:
        super().__init__(host_config.address, timeout)
        self.host_config = host_config
        self._client_factory = client_factory or paramiko.SSHClient
        self._client: paramiko.SSHClient | None = None

    def connect(self) -> paramiko.SSHClient:
        """Open the SSH connection if it is not open yet."""
        if self._client:
            return self._client

        client = self._client_factory()
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        key_path = self.host_config.get_key_path()
        try:
            client.connect(
                hostname=self.host_config.hostname,
                port=self.host_config.port,
                username=self.host_config.user,
                key_filename=key_path,
                timeout=self.host_config.connect_timeout,
                look_for_keys=key_path is None,
                allow_agent=True,
            )
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            raise GatewayConnectionError(
                f"Cannot connect to {self.host}: {exc}",
                host=self.host,
            ) from exc

        logger.debug("Connected", host=self.host, port=self.host_config.port)
        self._client = client
        return client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def run(
        self,
        command: str,
        *,
        sudo: bool = False,
        readonly: bool = False,
        timeout: int | None = None,
    ) -> CommandResult:
        client = self.connect()
        transport = client.get_transport()
        if transport is None or not transport.is_active():
            self.close()
            raise GatewayConnectionError(f"SSH connection to {self.host} was lost", host=self.host)

        timeout = timeout or self.timeout
        channel = transport.open_session()
        try:
            if self.host_config.forward_agent:
                AgentRequestHandler(channel)
            if self.host_config.pty:
                channel.get_pty()
            channel.settimeout(float(timeout) if timeout else None)
            channel.exec_command(self.with_sudo(command, sudo))

            stdout, stderr, exit_status = _collect_output(channel, timeout)
        except socket.timeout:
            return CommandResult(
                command=command,
                stdout="",
                stderr=f"Command timed out after {timeout} seconds",
                exit_status=-1,
            )
        finally:
            channel.close()

        return CommandResult(
            command=command,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_status=exit_status,
        )


def _collect_output(channel: paramiko.Channel, timeout: int | None) -> tuple[bytes, bytes, int]:
    """Read stdout and stderr side by side until the command exits.

    Both streams are drained on every poll.

    Raises:
        socket.timeout: If the command is still running after ``timeout`` seconds
    """
    deadline = time.monotonic() + timeout if timeout else None
    stdout: list[bytes] = []
    stderr: list[bytes] = []

    while True:
        exited = channel.exit_status_ready()
        received = False
        while channel.recv_ready():
            stdout.append(channel.recv(RECV_BUFFER))
            received = True
        while channel.recv_stderr_ready():
            stderr.append(channel.recv_stderr(RECV_BUFFER))
            received = True

        if exited:
            break
        if deadline is not None and time.monotonic() > deadline:
            raise socket.timeout(f"no exit status after {timeout} seconds")
        if not received:
            time.sleep(POLL_INTERVAL)

    return b"".join(stdout), b"".join(stderr), channel.recv_exit_status()
