"""Async utilities for running blocking host operations concurrently."""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_with_concurrency(
    n: int,
    *coros: Awaitable[T],
) -> list[T]:
    """Run coroutines with limited concurrency.

    Args:
        n: Maximum number of concurrent coroutines
        *coros: Coroutines to run

    Returns:
        List of results in the same order as input
    """
    semaphore = asyncio.Semaphore(max(1, n))

    async def sem_coro(coro: Awaitable[T]) -> T:
        async with semaphore:
            return await coro

    return await asyncio.gather(*[sem_coro(coro) for coro in coros])


async def map_in_threads(
    func: Callable[[T], R],
    items: Iterable[T],
    concurrency: int = 10,
) -> list[R]:
    """Apply a blocking function to items in worker threads.

    Args:
        func: Blocking function to apply
        items: Items to process
        concurrency: Maximum concurrent calls

    Returns:
        List of results in the same order as input
    """
    loop = asyncio.get_running_loop()

    # coroutines stay unscheduled until the semaphore admits them
    async def call(item: T) -> R:
        return await loop.run_in_executor(None, func, item)

    return await gather_with_concurrency(
        concurrency,
        *[call(item) for item in items],
    )


def run_sync(coro: Awaitable[T]) -> T:
    """Run a coroutine to completion from synchronous Click code."""
    return asyncio.run(coro)
