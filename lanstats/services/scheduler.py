"""Poll loop: fetch, reconcile and spend the request budget.

One cycle runs these steps in order:

1. fetch live streams for every channel (aborts the cycle on any failure)
2. resync online/offline state from the streams
3. spend one budget unit per users sub-batch to refresh view totals
4. spend what is left above the floor on follower counts, round-robin
5. record the cycle report

The budget comes from the ``Ratelimit-Remaining`` header of the first streams
sub-batch and is only ever decremented locally afterwards. With more than 100
channels the other streams sub-batches are not charged against it.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from ..core.errors import AuthError, QuotaExhausted, RemoteError
from ..models import CycleReport, StreamSnapshot
from .batching import chunked, fetch_in_batches
from .registry import ChannelRegistry
from .state import StateStore
from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30.0
DEFAULT_QUOTA_FLOOR = 5


class QuotaBudget:
    """Request budget for one cycle, never spent below *floor*."""

    def __init__(self, reported: int, floor: int = DEFAULT_QUOTA_FLOOR):
        self.reported = max(reported, 0)
        self.remaining = self.reported
        self.floor = max(floor, 0)

    @property
    def can_spend(self) -> bool:
        return self.remaining > self.floor

    @property
    def spent(self) -> int:
        return self.reported - self.remaining

    def spend(self) -> None:
        if not self.can_spend:
            raise QuotaExhausted(f"Budget at floor ({self.remaining}/{self.floor})")
        self.remaining -= 1

    def __repr__(self) -> str:
        return f"QuotaBudget(reported={self.reported}, remaining={self.remaining}, floor={self.floor})"


class RoundRobinCursor:
    """Position in the channel list for follower refreshes."""

    def __init__(self, size: int, position: int = 0):
        if size <= 0:
            raise ValueError("size must be positive")
        self.size = size
        self.position = position % size

    def advance(self, steps: int = 1) -> int:
        self.position = (self.position + steps) % self.size
        return self.position

    def to_dict(self) -> dict[str, int]:
        return {"size": self.size, "position": self.position}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RoundRobinCursor":
        return cls(int(data["size"]), int(data.get("position", 0)))


class Scheduler:
    """Owns the poll cycle and the background task that repeats it."""

    def __init__(
        self,
        client: TwitchAPIClient,
        registry: ChannelRegistry,
        store: StateStore,
        *,
        interval: float = DEFAULT_INTERVAL,
        quota_floor: int = DEFAULT_QUOTA_FLOOR,
        max_follower_fetches: int | None = None,
        cursor: RoundRobinCursor | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.registry = registry
        self.store = store
        self.interval = interval
        self.quota_floor = quota_floor
        # One full sweep per cycle unless told otherwise
        self.max_follower_fetches = (
            max_follower_fetches if max_follower_fetches is not None else len(registry)
        )
        self.cursor = cursor or RoundRobinCursor(len(registry))
        if self.cursor.size != len(registry):
            logger.warning(
                f"Cursor sized for {self.cursor.size} channels, registry has {len(registry)}; resizing"
            )
            self.cursor = RoundRobinCursor(len(registry), self.cursor.position)
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self.last_report: CycleReport | None = None

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleReport:
        """Run one poll cycle. Remote failures are logged, never raised."""
        started = time.monotonic()
        report = CycleReport(started_at=self._clock())

        fetched = await self._fetch_streams()
        if fetched is None:
            report.aborted = True
            report.duration = time.monotonic() - started
            self.last_report = report
            return report

        streams, reported = fetched
        budget = QuotaBudget(reported, self.quota_floor)
        report.quota_reported = budget.reported

        transitions = await self.store.apply_streams(streams)
        for channel_id, _, is_online in transitions:
            channel = self.registry.get(channel_id)
            name = channel.display_name if channel else channel_id
            logger.info(f"{name} is now {'online' if is_online else 'offline'}")
        report.online = sum(1 for stream in streams if stream.channel_id in self.registry)

        await self._refresh_totals(budget)
        report.follower_fetches = await self._refresh_followers(budget)

        report.quota_remaining = budget.remaining
        report.duration = time.monotonic() - started
        await self.store.record_cycle(report)
        self.last_report = report

        logger.debug(
            f"Cycle done: online={report.online}/{len(self.registry)}, "
            f"quota={budget.reported}->{budget.remaining}, "
            f"followers={report.follower_fetches}, cursor={self.cursor.position}, "
            f"took={report.duration:.2f}s"
        )
        return report

    async def _fetch_streams(self) -> tuple[list[StreamSnapshot], int] | None:
        quotas: list[int] = []

        async def fetch(batch: list[str]) -> list[StreamSnapshot]:
            streams, remaining = await self.client.fetch_streams(batch)
            quotas.append(remaining)
            return streams

        result = await fetch_in_batches(self.registry.logins, fetch)
        if not result.ok:
            logger.error(
                f"Streams fetch failed for {len(result.errors)}/{result.batches} sub-batches, "
                f"skipping cycle: {result.errors[0]}"
            )
            return None
        return result.records, quotas[0] if quotas else 0

    async def _refresh_totals(self, budget: QuotaBudget) -> None:
        for batch in chunked(self.registry.logins):
            try:
                budget.spend()
            except QuotaExhausted as e:
                logger.debug(f"Skipping view totals: {e}")
                return
            try:
                totals = await self.client.fetch_user_totals(batch)
            except (RemoteError, AuthError) as e:
                logger.warning(f"View totals fetch failed for {len(batch)} channels: {e}")
                continue
            await self.store.apply_totals(totals)

    async def _refresh_followers(self, budget: QuotaBudget) -> int:
        channels = self.registry.channels
        fetches = 0
        while fetches < self.max_follower_fetches:
            try:
                budget.spend()
            except QuotaExhausted:
                break
            channel = channels[self.cursor.position]
            try:
                count = await self.client.fetch_follower_count(channel.id)
            except (RemoteError, AuthError) as e:
                logger.warning(f"Follower fetch failed for {channel.display_name}: {e}")
                break
            await self.store.set_followers(channel.id, count)
            self.cursor.advance()
            fetches += 1
        return fetches

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    async def run_forever(self, stop_event: asyncio.Event | None = None) -> None:
        """Repeat cycles every ``interval`` seconds until *stop_event* is set."""
        stop_event = stop_event or self._stop_event
        logger.info(f"Poll loop started (interval={self.interval}s)")
        while not stop_event.is_set():
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Unexpected error in poll cycle: {e}")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            except TimeoutError:
                pass
        logger.info("Poll loop stopped")

    def start(self) -> asyncio.Task:
        """Start the poll loop as a background task."""
        if self._task is None or self._task.done():
            self._stop_event.clear()
            self._task = asyncio.create_task(self.run_forever(self._stop_event))
        return self._task

    async def stop(self) -> None:
        """Stop the poll loop, cancelling a cycle that is still in flight."""
        self._stop_event.set()
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
