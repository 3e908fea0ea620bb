"""Pytest fixtures for gitdeploy tests."""

import os
import shlex
from datetime import datetime, timezone
from typing import Callable, Generator

import pytest
from click.testing import CliRunner

from gitdeploy.config import GitDeployConfig, HostConfig, ProfileConfig, ReleaseSettings
from gitdeploy.remote.base import CommandResult, RemoteGateway

RELEASE_TIME = datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)


class FakeGateway(RemoteGateway):
    """Gateway simulating a host with a git checkout.

    Every command is recorded. ``git tag`` commands operate on an in-memory
    tag list; any command containing a string from ``fail_on`` exits 1.
    """

    def __init__(
        self,
        host: str = "web1",
        tags: list[str] | None = None,
        fail_on: list[str] | None = None,
    ):
        super().__init__(host)
        self.tags: list[str] = list(tags or [])
        self.fail_on = list(fail_on or [])
        self.commands: list[str] = []
        self.closed = False

    def run(
        self,
        command: str,
        *,
        sudo: bool = False,
        readonly: bool = False,
        timeout: int | None = None,
    ) -> CommandResult:
        actual = self.with_sudo(command, sudo)
        self.commands.append(actual)

        for pattern in self.fail_on:
            if pattern in actual:
                return CommandResult(command=command, stdout="", stderr=f"fatal: {pattern}", exit_status=1)

        args = shlex.split(command)
        if args[:1] == ["git"] and "tag" in args:
            return self._tag(command, args[args.index("tag") + 1 :])
        return CommandResult(command=command, stdout="", stderr="", exit_status=0)

    def _tag(self, command: str, args: list[str]) -> CommandResult:
        if args == ["-l"]:
            return CommandResult(command=command, stdout="\n".join(self.tags) + "\n", stderr="", exit_status=0)
        if args[:1] == ["-d"]:
            name = args[1]
            if name not in self.tags:
                return CommandResult(command=command, stdout="", stderr=f"error: tag '{name}' not found.", exit_status=1)
            self.tags.remove(name)
            return CommandResult(command=command, stdout=f"Deleted tag '{name}'", stderr="", exit_status=0)
        name = args[0]
        if name in self.tags:
            return CommandResult(command=command, stdout="", stderr=f"fatal: tag '{name}' already exists", exit_status=128)
        self.tags.append(name)
        return CommandResult(command=command, stdout="", stderr="", exit_status=0)

    def close(self) -> None:
        self.closed = True

    def ran(self, fragment: str) -> bool:
        """Check whether any recorded command contains ``fragment``."""
        return any(fragment in c for c in self.commands)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI runner."""
    return CliRunner()


@pytest.fixture
def profile() -> ProfileConfig:
    """Create a profile for the example application."""
    return ProfileConfig(
        application="shop",
        repository="git@github.com:example/shop.git",
        branch="main",
        deploy_to="/var/apps/shop",
        release_message="Deployed {{ release_tag }}",
        hosts=[
            HostConfig(hostname="web1", user="deploy"),
            HostConfig(hostname="web2", user="deploy"),
        ],
    )


@pytest.fixture
def settings(profile: ProfileConfig) -> ReleaseSettings:
    """Resolved release settings with a fixed release tag."""
    return profile.to_settings(now=RELEASE_TIME)


@pytest.fixture
def release_tag(settings: ReleaseSettings) -> str:
    """The tag a deploy with ``settings`` creates."""
    return settings.release_tag


@pytest.fixture
def make_gateway() -> Callable[..., FakeGateway]:
    """Factory for fake hosts, taking FakeGateway's arguments."""
    return FakeGateway


@pytest.fixture
def mock_config(profile: ProfileConfig) -> GitDeployConfig:
    """Create a mock configuration."""
    return GitDeployConfig(profiles={"default": profile})


@pytest.fixture
def gateway() -> FakeGateway:
    """A fake host with two earlier releases."""
    return FakeGateway(tags=["20240101000000", "20240201000000"])


@pytest.fixture(autouse=True)
def clean_env(tmp_path_factory) -> Generator[None, None, None]:
    """Clean environment variables before each test."""
    env_vars = [
        "GITDEPLOY_APPLICATION",
        "GITDEPLOY_REPOSITORY",
        "GITDEPLOY_BRANCH",
        "GITDEPLOY_DEPLOY_TO",
        "GITDEPLOY_PROFILE",
        "GITDEPLOY_CONFIG",
        "GITDEPLOY_CONFIG_DIR",
    ]

    original = {k: os.environ.get(k) for k in env_vars}

    for k in env_vars:
        os.environ.pop(k, None)

    # keep the user's own ~/.gitdeploy out of the tests
    os.environ["GITDEPLOY_CONFIG_DIR"] = str(tmp_path_factory.mktemp("gitdeploy-home"))

    yield

    for k, v in original.items():
        if v is not None:
            os.environ[k] = v
        else:
            os.environ.pop(k, None)


@pytest.fixture
def temp_config_file(tmp_path):
    """Create a temporary config file."""
    config_content = """
version: "1"
global:
  output_format: table
  confirm_destructive: true
profiles:
  default:
    application: shop
    repository: git@github.com:example/shop.git
    branch: main
    restart_command: "sudo systemctl restart {{ application }}"
    hosts:
      - hostname: web1
        user: deploy
      - hostname: web2
        user: deploy
  norepo:
    application: shop
    hosts:
      - hostname: web1
"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(config_content)
    return str(config_file)
