"""Pure watch-time accumulator.

Every function takes a ``TrackerState`` and returns a new one, so the rules
can be exercised without a player, a clock or a network.

Rules:
- Watch-time grows only from ticks while playing, by the wall-clock delta
  since the previous tick. A delta that is not positive or exceeds
  ``max_tick_gap_seconds`` is discarded.
- Watch-time never exceeds a real duration.
- Crossing the threshold sets a sticky local ``completed``. An estimated
  (fallback) duration never completes the video; only ``ended`` does.
- ``ended`` forces ``completed`` regardless of the accumulated watch-time.
"""

from dataclasses import dataclass, replace
from enum import Enum
from uuid import UUID

from coursepath.video.schemas import (
    UpdateVideoCompletionRequest,
    VideoCompletionResponse,
)

from .config import TrackerConfig
from .events import (
    EndedEvent,
    MetadataEvent,
    PauseEvent,
    PlayerEvent,
    PlayEvent,
    TimeUpdateEvent,
)


class SyncReason(str, Enum):
    """Why a report is pushed."""

    INTERVAL = "interval"
    THRESHOLD = "threshold"
    ENDED = "ended"
    TEARDOWN = "teardown"


@dataclass(frozen=True)
class TrackerState:
    """Tracker state for one lesson view.

    Attributes:
        lesson_id: Lesson being watched
        duration: Video duration in seconds (0 while unknown)
        duration_estimated: ``duration`` is the fallback estimate
        watch_time: Accumulated watched seconds
        position: Last known playback position
        playing: Player is playing
        completed: Local sticky completion flag
        server_completed: The server already holds a completed record
        last_tick_at: Clock value of the previous tick while playing
        synced_watch_time: Watch-time carried by the last pushed report
        ended_pending: ``ended`` seen and not yet reported
    """

    lesson_id: UUID
    duration: float = 0.0
    duration_estimated: bool = False
    watch_time: float = 0.0
    position: float = 0.0
    playing: bool = False
    completed: bool = False
    server_completed: bool = False
    last_tick_at: float | None = None
    synced_watch_time: float = 0.0
    ended_pending: bool = False

    @property
    def has_real_duration(self) -> bool:
        return self.duration > 0 and not self.duration_estimated

    @property
    def completion_rate(self) -> float:
        """Watched percentage (0-100) against the known or estimated duration."""
        if self.duration <= 0:
            return 0.0
        return min(100.0, self.watch_time / self.duration * 100)


def initial_state(
    lesson_id: UUID, stored: VideoCompletionResponse | None = None
) -> TrackerState:
    """Start from the server record so watch-time resumes where it stopped."""
    if stored is None:
        return TrackerState(lesson_id=lesson_id)

    watch_time = float(stored.watch_time_seconds)
    return TrackerState(
        lesson_id=lesson_id,
        duration=float(stored.total_time_seconds),
        watch_time=watch_time,
        position=float(stored.last_position_seconds),
        completed=stored.completed,
        server_completed=stored.completed,
        synced_watch_time=watch_time,
    )


def _set_duration(state: TrackerState, duration: float) -> TrackerState:
    if duration <= 0 or (state.has_real_duration and state.duration == duration):
        return state
    return replace(
        state,
        duration=duration,
        duration_estimated=False,
        watch_time=min(state.watch_time, duration),
    )


def apply_event(state: TrackerState, event: PlayerEvent, now: float) -> TrackerState:
    """Apply one canonical player event."""
    match event:
        case MetadataEvent(duration=duration):
            return _set_duration(state, duration)
        case PlayEvent():
            return replace(state, playing=True, last_tick_at=now)
        case PauseEvent():
            return replace(state, playing=False, last_tick_at=None)
        case EndedEvent():
            watch_time = state.watch_time
            position = state.position
            if state.has_real_duration:
                watch_time = max(watch_time, state.duration)
                position = state.duration
            return replace(
                state,
                playing=False,
                last_tick_at=None,
                completed=True,
                ended_pending=True,
                watch_time=watch_time,
                position=position,
            )
        case TimeUpdateEvent(position=position, duration=duration):
            if duration:
                state = _set_duration(state, duration)
            return replace(state, position=position)
    return state


def apply_tick(state: TrackerState, now: float, config: TrackerConfig) -> TrackerState:
    """Credit the wall-clock time elapsed since the previous tick."""
    if not state.playing:
        return state
    if state.last_tick_at is None or state.duration <= 0:
        return replace(state, last_tick_at=now)

    delta = now - state.last_tick_at
    state = replace(state, last_tick_at=now)
    if delta <= 0 or delta > config.max_tick_gap_seconds:
        return state

    watch_time = state.watch_time + delta
    if state.has_real_duration:
        watch_time = min(watch_time, state.duration)
    state = replace(state, watch_time=watch_time)

    if (
        state.has_real_duration
        and state.completion_rate >= config.completion_threshold_percent
    ):
        state = replace(state, completed=True)
    return state


def apply_duration_fallback(
    state: TrackerState, elapsed_seconds: float, config: TrackerConfig
) -> TrackerState:
    """Assume the fallback duration once the grace period passed without one."""
    if state.duration > 0 or elapsed_seconds < config.metadata_grace_seconds:
        return state
    return replace(
        state, duration=config.fallback_duration_seconds, duration_estimated=True
    )


def sync_reason(state: TrackerState, config: TrackerConfig) -> SyncReason | None:
    """Reason to push a report now, if any."""
    if state.ended_pending:
        return SyncReason.ENDED
    if state.completed and not state.server_completed:
        return SyncReason.THRESHOLD
    if state.watch_time - state.synced_watch_time >= config.sync_interval_seconds:
        return SyncReason.INTERVAL
    return None


def build_report(state: TrackerState) -> UpdateVideoCompletionRequest:
    """Report for the video completion store.

    The duration is left out while it is only an estimate, so the server
    never computes a completion rate against it.
    """
    return UpdateVideoCompletionRequest(
        watch_time_seconds=round(state.watch_time),
        total_time_seconds=round(state.duration) if state.has_real_duration else None,
        last_position_seconds=round(state.position),
        completed=state.completed,
    )


def mark_synced(
    state: TrackerState,
    report: UpdateVideoCompletionRequest,
    stored: VideoCompletionResponse,
    *,
    ended_reported: bool,
) -> TrackerState:
    """Record a successful push and adopt the server's completion verdict.

    ``state`` may have moved on while the push was in flight; an ``ended``
    that arrived after the report was built stays pending.
    """
    return replace(
        state,
        synced_watch_time=float(report.watch_time_seconds),
        ended_pending=state.ended_pending and not ended_reported,
        completed=state.completed or stored.completed,
        server_completed=stored.completed,
    )
