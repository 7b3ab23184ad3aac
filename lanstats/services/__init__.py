"""Services layer - polling, reconciliation and state

Services are initialized with their dependencies and wired together in
``lanstats.main``.
"""

from .batching import MAX_BATCH_SIZE, chunked, fetch_in_batches
from .credentials import CredentialManager
from .registry import ChannelRegistry
from .scheduler import QuotaBudget, RoundRobinCursor, Scheduler
from .state import StateStore
from .twitch_api import TwitchAPIClient

__all__ = [
    "MAX_BATCH_SIZE",
    "ChannelRegistry",
    "CredentialManager",
    "QuotaBudget",
    "RoundRobinCursor",
    "Scheduler",
    "StateStore",
    "TwitchAPIClient",
    "chunked",
    "fetch_in_batches",
]
