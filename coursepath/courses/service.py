"""Course catalog service layer.

Read side of the catalog: resolves a course into its immutable
unit/lesson tree, including the quiz owned by each lesson.
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import Course, CourseTree, Lesson, Unit


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class LessonNotFoundError(CourseError):
    """Lesson is not part of the course."""

    def __init__(self, message: str = "Lesson not found in course"):
        super().__init__(message, "lesson_not_found")


# ==============================================================================
# Catalog Service
# ==============================================================================


class CourseCatalogService:
    """Read-only access to courses and their unit/lesson tree."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.courses WHERE id = ?
        """)

        self._get_course_units = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_units WHERE course_id = ?
        """)

        self._get_unit_lessons = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.unit_lessons WHERE unit_id = ?
        """)

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID."""
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def get_course_tree(self, course_id: UUID) -> CourseTree | None:
        """Load the course with all units and lessons in position order.

        Returns:
            CourseTree or None if the course does not exist
        """
        course = await self.get_course(course_id)
        if course is None:
            return None

        unit_rows = await self.session.aexecute(self._get_course_units, [course_id])
        units: list[Unit] = []
        for unit_row in unit_rows:
            lesson_rows = await self.session.aexecute(
                self._get_unit_lessons, [unit_row.unit_id]
            )
            units.append(
                Unit(
                    id=unit_row.unit_id,
                    course_id=course_id,
                    title=unit_row.title or "",
                    position=unit_row.position,
                    lessons=tuple(
                        Lesson.from_row(unit_row.unit_id, row) for row in lesson_rows
                    ),
                )
            )

        return CourseTree(course=course, units=tuple(units))

    async def require_course_tree(self, course_id: UUID) -> CourseTree:
        """Same as get_course_tree but raises CourseNotFoundError."""
        tree = await self.get_course_tree(course_id)
        if tree is None:
            raise CourseNotFoundError
        return tree
