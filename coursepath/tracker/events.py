"""Canonical player events.

Every provider adapter maps its native events onto these five.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class MetadataEvent:
    duration: float


@dataclass(frozen=True)
class PlayEvent:
    pass


@dataclass(frozen=True)
class PauseEvent:
    pass


@dataclass(frozen=True)
class EndedEvent:
    pass


@dataclass(frozen=True)
class TimeUpdateEvent:
    position: float
    duration: float | None = None


PlayerEvent = MetadataEvent | PlayEvent | PauseEvent | EndedEvent | TimeUpdateEvent
