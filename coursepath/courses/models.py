"""Database models for the course catalog.

Cassandra table definitions for:
- Courses: Main course table
- Units: Ordered units of a course
- Lessons: Ordered lessons of a unit, each optionally owning a quiz

The catalog is immutable from the point of view of the progress engine:
authoring happens elsewhere, this service only reads the tree.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class ContentStatus(str, Enum):
    """Content publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ContentType(str, Enum):
    """Lesson content type."""

    VIDEO = "video"
    TEXT = "text"
    PDF = "pdf"
    EMBED = "embed"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    slug TEXT,
    description TEXT,
    status TEXT,
    creator_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Units of a course, ordered by position
COURSE_UNITS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_units (
    course_id UUID,
    position INT,
    unit_id UUID,
    title TEXT,
    PRIMARY KEY (course_id, position, unit_id)
) WITH CLUSTERING ORDER BY (position ASC, unit_id ASC)
"""

# Lessons of a unit, ordered by position
UNIT_LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.unit_lessons (
    unit_id UUID,
    position INT,
    lesson_id UUID,
    title TEXT,
    content_type TEXT,
    duration_seconds INT,
    quiz_id UUID,
    PRIMARY KEY (unit_id, position, lesson_id)
) WITH CLUSTERING ORDER BY (position ASC, lesson_id ASC)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSE_UNITS_TABLE_CQL,
    UNIT_LESSONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Course:
    """Course entity.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        slug: URL-friendly identifier
        description: Course description
        status: Publication status
        creator_id: User who created the course
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        slug: str | None = None,
        description: str | None = None,
        status: str = ContentStatus.PUBLISHED.value,
        creator_id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.slug = slug
        self.description = description
        self.status = status
        self.creator_id = creator_id
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            slug=row.slug,
            description=row.description,
            status=row.status or ContentStatus.PUBLISHED.value,
            creator_id=row.creator_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "status": self.status,
            "creator_id": self.creator_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title} ({self.status})>"


@dataclass(frozen=True)
class Lesson:
    """A lesson inside a unit."""

    id: UUID
    unit_id: UUID
    title: str
    position: int
    content_type: str = ContentType.VIDEO.value
    duration_seconds: int | None = None
    quiz_id: UUID | None = None

    @property
    def has_quiz(self) -> bool:
        return self.quiz_id is not None

    @classmethod
    def from_row(cls, unit_id: UUID, row: Any) -> "Lesson":
        return cls(
            id=row.lesson_id,
            unit_id=unit_id,
            title=row.title or "",
            position=row.position,
            content_type=row.content_type or ContentType.VIDEO.value,
            duration_seconds=row.duration_seconds,
            quiz_id=row.quiz_id,
        )


@dataclass(frozen=True)
class Unit:
    """A unit of a course with its ordered lessons."""

    id: UUID
    course_id: UUID
    title: str
    position: int
    lessons: tuple[Lesson, ...] = ()

    @property
    def lesson_ids(self) -> frozenset[UUID]:
        return frozenset(lesson.id for lesson in self.lessons)


@dataclass(frozen=True)
class CourseTree:
    """Immutable unit/lesson tree of a course.

    This is the shape the completion aggregator works on: the fixed total
    lesson count and the lesson membership of every unit.
    """

    course: Course
    units: tuple[Unit, ...] = field(default_factory=tuple)

    @property
    def course_id(self) -> UUID:
        return self.course.id

    @property
    def lesson_ids(self) -> frozenset[UUID]:
        return frozenset(lesson.id for unit in self.units for lesson in unit.lessons)

    @property
    def total_lessons(self) -> int:
        return sum(len(unit.lessons) for unit in self.units)

    def locate(self, lesson_id: UUID) -> tuple[Unit, Lesson] | None:
        """Find a lesson and its unit, or None when the lesson is not in the course."""
        for unit in self.units:
            for lesson in unit.lessons:
                if lesson.id == lesson_id:
                    return unit, lesson
        return None
