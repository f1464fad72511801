"""
Tests for bounded-concurrency batches.
"""

from __future__ import annotations

import asyncio

import pytest

from walletpool.batch import BatchRunner, failures, run_bounded


class TestBatchRunner:
    """Tests for BatchRunner."""

    @pytest.mark.asyncio
    async def test_concurrency_ceiling(self) -> None:
        in_flight = 0
        peak = 0

        async def operation(item: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return item

        results = await BatchRunner(3).run(range(10), operation)

        assert len(results) == 10
        assert peak == 3

    @pytest.mark.asyncio
    async def test_results_keep_input_order(self) -> None:
        async def operation(item: int) -> int:
            # later items finish first
            await asyncio.sleep(0.001 * (5 - item))
            return item * 10

        results = await run_bounded(range(5), 5, operation)

        assert [r.item for r in results] == [0, 1, 2, 3, 4]
        assert [r.value for r in results] == [0, 10, 20, 30, 40]

    @pytest.mark.asyncio
    async def test_errors_are_isolated(self) -> None:
        completed = []

        async def operation(item: int) -> int:
            if item == 1:
                raise RuntimeError("boom")
            await asyncio.sleep(0)
            completed.append(item)
            return item

        results = await BatchRunner(2).run([0, 1, 2], operation)

        assert sorted(completed) == [0, 2]
        failed = failures(results)
        assert len(failed) == 1
        assert failed[0].item == 1
        assert isinstance(failed[0].error, RuntimeError)
        assert results[0].ok and results[2].ok

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        async def operation(item: int) -> int:
            return item

        assert await BatchRunner(1).run([], operation) == []

    def test_invalid_concurrency(self) -> None:
        with pytest.raises(ValueError):
            BatchRunner(0)
