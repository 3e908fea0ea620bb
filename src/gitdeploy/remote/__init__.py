"""Gateways that execute commands on target hosts."""

from gitdeploy.remote.base import CommandResult, RemoteGateway
from gitdeploy.remote.dry_run import DryRunGateway
from gitdeploy.remote.local import LocalGateway

__all__ = [
    "CommandResult",
    "DryRunGateway",
    "LocalGateway",
    "RemoteGateway",
]
