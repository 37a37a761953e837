"""Database models for video completion tracking."""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from coursepath.courses.models import ensure_utc_aware


_RATE_QUANTUM = Decimal("0.01")


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# One row per (user, lesson). ``version`` drives the compare-and-set merge:
# the first report inserts with IF NOT EXISTS, later reports update with
# IF version = <version read>.
LESSON_VIDEO_COMPLETIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_video_completions (
    user_id UUID,
    lesson_id UUID,
    watch_time_seconds INT,
    total_time_seconds INT,
    last_position_seconds INT,
    completion_rate DECIMAL,
    completed BOOLEAN,
    completed_at TIMESTAMP,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    version INT,
    PRIMARY KEY ((user_id), lesson_id)
)
"""

VIDEO_TABLES_CQL = [
    LESSON_VIDEO_COMPLETIONS_TABLE_CQL,
]


def compute_completion_rate(
    watch_time_seconds: int, total_time_seconds: int
) -> Decimal:
    """Watched percentage, capped at 100 and rounded to two decimals."""
    if total_time_seconds <= 0:
        return Decimal(0)
    rate = Decimal(watch_time_seconds) * 100 / Decimal(total_time_seconds)
    return min(Decimal(100), rate).quantize(_RATE_QUANTUM, rounding=ROUND_HALF_UP)


# ==============================================================================
# Entity Classes
# ==============================================================================


class VideoCompletion:
    """Video completion for one user and lesson.

    Attributes:
        user_id: User UUID
        lesson_id: Lesson UUID
        watch_time_seconds: Maximum watch-time ever reported
        total_time_seconds: Video duration (0 while unknown)
        last_position_seconds: Resume position from the latest report
        completion_rate: watch_time / total_time as a percentage
        completed: Sticky completion flag
        completed_at: First time the flag became true
        created_at: First report timestamp
        updated_at: Latest merge timestamp
        version: Compare-and-set counter
    """

    def __init__(
        self,
        user_id: UUID,
        lesson_id: UUID,
        watch_time_seconds: int = 0,
        total_time_seconds: int = 0,
        last_position_seconds: int = 0,
        completion_rate: Decimal = Decimal(0),
        completed: bool = False,
        completed_at: datetime | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        version: int = 0,
    ):
        self.user_id = user_id
        self.lesson_id = lesson_id
        self.watch_time_seconds = watch_time_seconds
        self.total_time_seconds = total_time_seconds
        self.last_position_seconds = last_position_seconds
        self.completion_rate = completion_rate
        self.completed = completed
        self.completed_at = ensure_utc_aware(completed_at)
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)
        self.version = version

    @classmethod
    def from_row(cls, row: Any) -> "VideoCompletion":
        """Create VideoCompletion instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            lesson_id=row.lesson_id,
            watch_time_seconds=row.watch_time_seconds or 0,
            total_time_seconds=row.total_time_seconds or 0,
            last_position_seconds=row.last_position_seconds or 0,
            completion_rate=row.completion_rate or Decimal(0),
            completed=bool(row.completed),
            completed_at=row.completed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
            version=row.version or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "lesson_id": self.lesson_id,
            "watch_time_seconds": self.watch_time_seconds,
            "total_time_seconds": self.total_time_seconds,
            "last_position_seconds": self.last_position_seconds,
            "completion_rate": self.completion_rate,
            "completed": self.completed,
            "completed_at": self.completed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<VideoCompletion user={self.user_id} lesson={self.lesson_id} "
            f"{self.watch_time_seconds}/{self.total_time_seconds}s "
            f"completed={self.completed}>"
        )
