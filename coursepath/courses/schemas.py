"""Pydantic schemas for the course catalog."""

from uuid import UUID

from pydantic import BaseModel

from .models import CourseTree


class LessonOutline(BaseModel):
    """Lesson entry of a course outline."""

    id: UUID
    title: str
    position: int
    content_type: str
    duration_seconds: int | None = None
    quiz_id: UUID | None = None


class UnitOutline(BaseModel):
    """Unit entry of a course outline."""

    id: UUID
    title: str
    position: int
    lessons: list[LessonOutline] = []


class CourseOutlineResponse(BaseModel):
    """Course with its ordered unit/lesson tree."""

    id: UUID
    title: str
    slug: str | None = None
    description: str | None = None
    total_lessons: int
    units: list[UnitOutline] = []

    @classmethod
    def from_tree(cls, tree: CourseTree) -> "CourseOutlineResponse":
        """Create response from a loaded course tree."""
        return cls(
            id=tree.course.id,
            title=tree.course.title,
            slug=tree.course.slug,
            description=tree.course.description,
            total_lessons=tree.total_lessons,
            units=[
                UnitOutline(
                    id=unit.id,
                    title=unit.title,
                    position=unit.position,
                    lessons=[
                        LessonOutline(
                            id=lesson.id,
                            title=lesson.title,
                            position=lesson.position,
                            content_type=lesson.content_type,
                            duration_seconds=lesson.duration_seconds,
                            quiz_id=lesson.quiz_id,
                        )
                        for lesson in unit.lessons
                    ],
                )
                for unit in tree.units
            ],
        )
