"""Video progress tracker client.

Turns an embedded player's events into video completion reports:
- Provider adapters normalize native player events
- A pure accumulator filters ticks and decides when to sync
- An asyncio session drives the tick loop and pushes reports over HTTP
"""

from .adapters import PlayerJsAdapter, PostMessageAdapter, get_adapter
from .client import ProgressApiClient, ProgressApiError
from .config import TrackerConfig
from .events import (
    EndedEvent,
    MetadataEvent,
    PauseEvent,
    PlayerEvent,
    PlayEvent,
    TimeUpdateEvent,
)
from .session import TrackerSession
from .state import SyncReason, TrackerState


__all__ = [
    "EndedEvent",
    "MetadataEvent",
    "PauseEvent",
    "PlayEvent",
    "PlayerEvent",
    "PlayerJsAdapter",
    "PostMessageAdapter",
    "ProgressApiClient",
    "ProgressApiError",
    "SyncReason",
    "TimeUpdateEvent",
    "TrackerConfig",
    "TrackerSession",
    "TrackerState",
    "get_adapter",
]
