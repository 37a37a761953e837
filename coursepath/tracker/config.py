"""Tracker configuration."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TrackerConfig:
    """Tracker tuning.

    Attributes:
        tick_seconds: Cadence of the accumulation loop
        max_tick_gap_seconds: Ticks further apart than this are discarded
            (backgrounded tab, seek, clock jump)
        sync_interval_seconds: Push a report every this many watched seconds
        completion_threshold_percent: Watched share that completes the video
        metadata_grace_seconds: How long to wait for a duration before
            assuming the fallback one
        fallback_duration_seconds: Estimated duration used when the player
            never reports one. Only drives the progress display.
    """

    tick_seconds: float = 1.0
    max_tick_gap_seconds: float = 3.0
    sync_interval_seconds: float = 15.0
    completion_threshold_percent: float = 80.0
    metadata_grace_seconds: float = 10.0
    fallback_duration_seconds: float = 600.0
