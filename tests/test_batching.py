"""Unit tests for chunking and partial-result batch fetches."""

from __future__ import annotations

import math

import pytest

from lanstats.core.errors import BatchTooLarge, RemoteError, Unauthorized
from lanstats.services.batching import MAX_BATCH_SIZE, chunked, fetch_in_batches


class TestChunked:
    @pytest.mark.parametrize("n", [0, 1, 99, 100, 101, 250, 1000])
    def test_batch_count_and_reassembly(self, n: int) -> None:
        items = [f"login{i}" for i in range(n)]
        batches = list(chunked(items))

        assert len(batches) == math.ceil(n / MAX_BATCH_SIZE)
        assert all(len(batch) <= MAX_BATCH_SIZE for batch in batches)
        assert [item for batch in batches for item in batch] == items

    def test_custom_size(self) -> None:
        assert list(chunked([1, 2, 3, 4, 5], size=2)) == [[1, 2], [3, 4], [5]]

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            list(chunked([1], size=0))


@pytest.mark.asyncio
class TestFetchInBatches:
    async def test_concatenates_records(self) -> None:
        items = list(range(250))

        async def fetch(batch: list[int]) -> list[int]:
            return [x * 2 for x in batch]

        result = await fetch_in_batches(items, fetch)

        assert result.ok
        assert result.batches == 3
        assert result.records == [x * 2 for x in items]

    async def test_failed_sub_batch_is_reported_not_masked(self) -> None:
        items = list(range(250))

        async def fetch(batch: list[int]) -> list[int]:
            if batch[0] == 100:
                raise RemoteError("boom", status=502)
            return batch

        result = await fetch_in_batches(items, fetch)

        assert not result.ok
        assert result.batches == 3
        assert len(result.errors) == 1
        assert result.errors[0].status == 502
        assert result.records == list(range(100)) + list(range(200, 250))

    async def test_auth_errors_are_collected(self) -> None:
        async def fetch(batch: list[int]) -> list[int]:
            raise Unauthorized("401")

        result = await fetch_in_batches([1, 2], fetch)

        assert result.records == []
        assert isinstance(result.errors[0], Unauthorized)

    async def test_batch_too_large_propagates(self) -> None:
        async def fetch(batch: list[int]) -> list[int]:
            raise BatchTooLarge(len(batch) + 1, MAX_BATCH_SIZE)

        with pytest.raises(BatchTooLarge):
            await fetch_in_batches([1], fetch)

    async def test_empty_input_makes_no_calls(self) -> None:
        calls = []

        async def fetch(batch: list[int]) -> list[int]:
            calls.append(batch)
            return batch

        result = await fetch_in_batches([], fetch)

        assert calls == []
        assert result.batches == 0
        assert result.ok
