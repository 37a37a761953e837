"""Pydantic schemas for course progress.

Request and response models for:
- Lesson completion updates (aggregator input)
- Course progress queries with resume pointers
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from coursepath.certificates.schemas import CertificateResponse

from .models import CourseProgress


class UpdateLessonProgressRequest(BaseModel):
    """Lesson completion update.

    ``completed`` is the caller's claim. It is verified against the video and
    quiz stores and never trusted on its own.
    """

    completed: bool = Field(
        default=True, description="Caller asserts the lesson is complete"
    )


class CourseProgressResponse(BaseModel):
    """Course progress response."""

    course_id: UUID
    completed_lessons: list[UUID] = Field(default_factory=list)
    completed_units: list[UUID] = Field(default_factory=list)
    progress_percent: Decimal = Field(description="0-100 percentage")
    completed: bool = False
    current_lesson_id: UUID | None = Field(
        default=None, description="Lesson to resume"
    )
    current_unit_id: UUID | None = None
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: CourseProgress) -> "CourseProgressResponse":
        """Create response from entity."""
        return cls(
            course_id=entity.course_id,
            completed_lessons=sorted(entity.completed_lessons, key=str),
            completed_units=sorted(entity.completed_units, key=str),
            progress_percent=entity.progress_percent,
            completed=entity.completed,
            current_lesson_id=entity.current_lesson_id,
            current_unit_id=entity.current_unit_id,
            last_accessed_at=entity.last_accessed_at,
            completed_at=entity.completed_at,
        )

    @classmethod
    def empty(cls, course_id: UUID) -> "CourseProgressResponse":
        """Progress of an enrolled user who has not completed anything yet."""
        return cls(course_id=course_id, progress_percent=Decimal(0))


class UpdateLessonProgressResponse(BaseModel):
    """Outcome of a lesson completion update."""

    lesson_id: UUID
    lesson_completed: bool
    unit_completed: bool
    course_completed: bool
    progress_percent: Decimal
    course_just_completed: bool = False
    progress: CourseProgressResponse
    certificate: CertificateResponse | None = Field(
        default=None, description="Issued on the transition into completion"
    )
    certificate_error: str | None = Field(
        default=None,
        description="Issuance failure reason, retrying issuance is safe",
    )
