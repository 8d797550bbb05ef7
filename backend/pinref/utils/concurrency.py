"""Bounded fan-out and per-key locking for async service code."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable, Iterable
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Iterable[T],
    func: Callable[[T], Awaitable[R]],
    limit: int,
    return_exceptions: bool = False,
) -> list[Any]:
    """Run ``func`` over ``items`` with at most ``limit`` calls in flight.

    Results are returned in input order. With ``return_exceptions=True`` a
    failing call contributes its exception instead of aborting the others.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    semaphore = asyncio.Semaphore(limit)

    async def run_one(item: T) -> R:
        async with semaphore:
            return await func(item)

    tasks = [run_one(item) for item in items]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


class KeyedLock:
    """One asyncio.Lock per key, dropped again once nobody holds or waits on it."""

    __slots__ = ("_locks", "_waiters")

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
