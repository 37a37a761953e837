"""Database models for course progress.

One row per (user, course) holding the hierarchical completion state. The
row is written only by the completion aggregator, always as a full
recomputed state, guarded by a compare-and-set on ``version``.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from coursepath.courses.models import ensure_utc_aware


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partition key: user_id, so "my courses progress" is a single partition
COURSE_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_progress (
    user_id UUID,
    course_id UUID,
    completed_lessons SET<UUID>,
    completed_units SET<UUID>,
    progress_percent DECIMAL,
    completed BOOLEAN,
    current_lesson_id UUID,
    current_unit_id UUID,
    last_accessed_at TIMESTAMP,
    completed_at TIMESTAMP,
    version INT,
    PRIMARY KEY ((user_id), course_id)
)
"""

PROGRESS_TABLES_CQL = [
    COURSE_PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class CourseProgress:
    """Course progress entity.

    Attributes:
        user_id: User UUID
        course_id: Course UUID
        completed_lessons: Lessons whose video and quiz requirements are met
        completed_units: Units whose lessons are all completed
        progress_percent: 100 * completed lessons / total lessons
        completed: progress_percent reached 100
        current_lesson_id: Lesson to resume (None once completed)
        current_unit_id: Unit of the lesson to resume (None once completed)
        last_accessed_at: Last state change
        completed_at: When the course became completed
        version: Compare-and-set counter
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        completed_lessons: set[UUID] | frozenset[UUID] | None = None,
        completed_units: set[UUID] | frozenset[UUID] | None = None,
        progress_percent: Decimal = Decimal(0),
        completed: bool = False,
        current_lesson_id: UUID | None = None,
        current_unit_id: UUID | None = None,
        last_accessed_at: datetime | None = None,
        completed_at: datetime | None = None,
        version: int = 0,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.completed_lessons = frozenset(completed_lessons or ())
        self.completed_units = frozenset(completed_units or ())
        self.progress_percent = progress_percent
        self.completed = completed
        self.current_lesson_id = current_lesson_id
        self.current_unit_id = current_unit_id
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)
        self.completed_at = ensure_utc_aware(completed_at)
        self.version = version

    @classmethod
    def from_row(cls, row: Any) -> "CourseProgress":
        """Create CourseProgress instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            completed_lessons=set(row.completed_lessons or ()),
            completed_units=set(row.completed_units or ()),
            progress_percent=row.progress_percent or Decimal(0),
            completed=bool(row.completed),
            current_lesson_id=row.current_lesson_id,
            current_unit_id=row.current_unit_id,
            last_accessed_at=row.last_accessed_at,
            completed_at=row.completed_at,
            version=row.version or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "completed_lessons": sorted(self.completed_lessons, key=str),
            "completed_units": sorted(self.completed_units, key=str),
            "progress_percent": self.progress_percent,
            "completed": self.completed,
            "current_lesson_id": self.current_lesson_id,
            "current_unit_id": self.current_unit_id,
            "last_accessed_at": self.last_accessed_at,
            "completed_at": self.completed_at,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<CourseProgress user={self.user_id} course={self.course_id} "
            f"{self.progress_percent}% completed={self.completed}>"
        )
