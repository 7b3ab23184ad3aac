"""Chunked Helix fetches with structured partial results."""

import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from typing import TypeVar

from ..core.errors import AuthError, RemoteError
from ..models import BatchResult

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 100

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int = MAX_BATCH_SIZE) -> Iterator[list[T]]:
    """Yield consecutive slices of at most *size* items."""
    if size <= 0:
        raise ValueError("size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


async def fetch_in_batches(
    items: Sequence[T],
    fetch: Callable[[list[T]], Awaitable[list[R]]],
    size: int = MAX_BATCH_SIZE,
) -> BatchResult[R]:
    """Call *fetch* once per sub-batch, sequentially.

    A failing sub-batch contributes no records; its error is collected in
    ``errors`` and the remaining sub-batches still run.
    """
    result: BatchResult[R] = BatchResult()
    for batch in chunked(items, size):
        result.batches += 1
        try:
            records = await fetch(batch)
        except (RemoteError, AuthError) as e:
            logger.warning(f"Sub-batch {result.batches} ({len(batch)} ids) failed: {e}")
            result.errors.append(e)
            continue
        result.records.extend(records)
    return result
