"""
Bounded-concurrency map with per-item error capture.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from walletpool.constants import DEFAULT_CONCURRENCY

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchResult(Generic[T, R]):
    """Outcome of one item: either a value or the exception it raised"""

    item: T
    value: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchRunner:
    """
    Runs an async operation over items with at most ``concurrency`` in flight.

    Results keep the input order. An exception raised for one item is stored
    in its result and never affects the other items.
    """

    def __init__(self, concurrency: int = DEFAULT_CONCURRENCY):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency

    async def run(
        self, items: Iterable[T], operation: Callable[[T], Awaitable[R]]
    ) -> list[BatchResult[T, R]]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(item: T) -> BatchResult[T, R]:
            async with semaphore:
                try:
                    return BatchResult(item, value=await operation(item))
                except Exception as e:
                    return BatchResult(item, error=e)

        return list(await asyncio.gather(*(run_one(item) for item in items)))


async def run_bounded(
    items: Iterable[T], concurrency: int, operation: Callable[[T], Awaitable[R]]
) -> list[BatchResult[T, R]]:
    return await BatchRunner(concurrency).run(items, operation)


def failures(results: list[BatchResult[T, R]]) -> list[BatchResult[T, R]]:
    return [r for r in results if not r.ok]
