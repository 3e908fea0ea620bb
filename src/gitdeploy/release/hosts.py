"""Running a task on several hosts at once."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from gitdeploy.core.async_utils import map_in_threads, run_sync
from gitdeploy.core.exceptions import GitDeployError
from gitdeploy.core.logging import StructuredLogger

if TYPE_CHECKING:
    from gitdeploy.config import HostConfig
    from gitdeploy.remote.base import RemoteGateway

logger = StructuredLogger(__name__)

T = TypeVar("T")

GatewayFactory = Callable[["HostConfig"], "RemoteGateway"]
HostTask = Callable[["RemoteGateway"], T]


@dataclass
class HostResult(Generic[T]):
    """Result of running a task on one host."""

    host: str
    success: bool
    value: T | None = None
    error: BaseException | None = None
    duration: float = 0.0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        value = self.value.to_dict() if hasattr(self.value, "to_dict") else self.value
        return {
            "host": self.host,
            "success": self.success,
            "value": value,
            "error": self.error_message,
            "duration": self.duration,
        }


def run_on_host(
    host: "HostConfig",
    task: HostTask[T],
    gateway_factory: GatewayFactory,
) -> HostResult[T]:
    """Run a task against one host with its own gateway.

    Failures are captured in the result so that one host cannot stop the
    others.
    """
    started_at = datetime.now()
    start_time = time.monotonic()

    try:
        with gateway_factory(host) as gateway:
            value = task(gateway)
    except GitDeployError as e:
        logger.error("Task failed", host=host.address, error=str(e))
        return HostResult(
            host=host.address,
            success=False,
            error=e,
            duration=time.monotonic() - start_time,
            started_at=started_at,
            completed_at=datetime.now(),
        )
    except Exception as e:
        logger.exception("Unexpected error", host=host.address)
        return HostResult(
            host=host.address,
            success=False,
            error=e,
            duration=time.monotonic() - start_time,
            started_at=started_at,
            completed_at=datetime.now(),
        )

    return HostResult(
        host=host.address,
        success=True,
        value=value,
        duration=time.monotonic() - start_time,
        started_at=started_at,
        completed_at=datetime.now(),
    )


def run_on_hosts(
    hosts: list["HostConfig"],
    task: HostTask[T],
    gateway_factory: GatewayFactory,
    max_parallel: int = 5,
) -> list[HostResult[T]]:
    """Run a task on every host, in parallel when there is more than one.

    Args:
        hosts: Target hosts
        task: Callable receiving the host's gateway
        gateway_factory: Builds a fresh gateway for a host
        max_parallel: Maximum number of hosts worked on at once

    Returns:
        One HostResult per host, in the order the hosts were given
    """
    if len(hosts) <= 1 or max_parallel <= 1:
        return [run_on_host(host, task, gateway_factory) for host in hosts]

    return run_sync(
        map_in_threads(
            lambda host: run_on_host(host, task, gateway_factory),
            hosts,
            concurrency=max_parallel,
        )
    )
