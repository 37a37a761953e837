"""Video completion store.

Durable per (user, lesson) record of watch-time, duration, resume position
and a monotonic completed flag, merged from tracker reports.
"""

from .models import VIDEO_TABLES_CQL, VideoCompletion


__all__ = [
    "VIDEO_TABLES_CQL",
    "VideoCompletion",
]
