"""Pydantic schemas for course enrollments."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import EnrollmentStatus


class EnrollRequest(BaseModel):
    """Request to enroll in a course."""

    course_id: UUID = Field(..., description="Course UUID to enroll in")


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    course_id: UUID
    user_id: UUID
    status: EnrollmentStatus
    enrolled_at: datetime


class EnrollmentListResponse(BaseModel):
    """List of user enrollments."""

    items: list[EnrollmentResponse]
    total: int
