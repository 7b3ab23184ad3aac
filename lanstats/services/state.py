"""In-memory per-channel state shared by the poll loop and the HTTP server.

The scheduler is the only writer. Readers take a copy under the same lock,
so a snapshot never mixes two cycles.
"""

import asyncio
from collections.abc import Iterable

from ..models import ChannelRecord, ChannelState, CycleReport, StreamSnapshot, UserTotals
from .registry import ChannelRegistry

Snapshot = tuple[list[tuple[ChannelRecord, ChannelState]], CycleReport | None]


class StateStore:
    """Last known state of every registered channel."""

    def __init__(self, registry: ChannelRegistry):
        self.registry = registry
        self._states: dict[str, ChannelState] = {channel.id: ChannelState() for channel in registry}
        self._last_cycle: CycleReport | None = None
        self._lock = asyncio.Lock()

    async def apply_streams(self, streams: Iterable[StreamSnapshot]) -> list[tuple[str, bool, bool]]:
        """Resync online status from one cycle's live streams.

        Channels missing from *streams* go offline. Returns
        ``(channel_id, was_online, is_online)`` for every channel that changed.
        """
        live = {stream.channel_id: stream for stream in streams}
        transitions = []
        async with self._lock:
            for channel_id, state in self._states.items():
                was_online = state.online
                stream = live.get(channel_id)
                if stream is not None:
                    state.online = True
                    state.viewers = stream.viewer_count
                    state.up_since = stream.started_at
                else:
                    state.go_offline()
                if was_online != state.online:
                    transitions.append((channel_id, was_online, state.online))
        return transitions

    async def apply_totals(self, totals: Iterable[UserTotals]) -> int:
        """Update view totals for matched channels; returns how many matched."""
        matched = 0
        async with self._lock:
            for user in totals:
                state = self._states.get(user.channel_id)
                if state is None:
                    continue
                state.total_views = user.view_count
                matched += 1
        return matched

    async def set_followers(self, channel_id: str, count: int) -> None:
        async with self._lock:
            state = self._states.get(channel_id)
            if state is not None:
                state.followers = max(count, 0)

    async def record_cycle(self, report: CycleReport) -> None:
        async with self._lock:
            self._last_cycle = report

    async def get(self, channel_id: str) -> ChannelState | None:
        async with self._lock:
            state = self._states.get(channel_id)
            return state.copy() if state is not None else None

    async def snapshot(self) -> Snapshot:
        """Return a consistent copy of all channel states and the last cycle."""
        async with self._lock:
            channels = [
                (channel, self._states[channel.id].copy()) for channel in self.registry
            ]
            return channels, self._last_cycle
