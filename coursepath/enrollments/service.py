"""Course enrollment service layer."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import Enrollment, EnrollmentStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class EnrollmentError(Exception):
    """Base enrollment error."""

    def __init__(self, message: str, code: str = "enrollment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class AlreadyEnrolledError(EnrollmentError):
    """User already enrolled."""

    def __init__(self, message: str = "User already enrolled in course"):
        super().__init__(message, "already_enrolled")


class NotEnrolledError(EnrollmentError):
    """User not enrolled in course."""

    def __init__(self, message: str = "User not enrolled in course"):
        super().__init__(message, "not_enrolled")


# ==============================================================================
# Enrollment Service
# ==============================================================================


class EnrollmentService:
    """Service for course enrollments."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_user_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments WHERE user_id = ?
        """)

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (user_id, course_id, status, enrolled_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        """Get enrollment by user and course."""
        result = await self.session.aexecute(self._get_enrollment, [user_id, course_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def is_enrolled(self, user_id: UUID, course_id: UUID) -> bool:
        """Check whether the user holds an active enrollment in the course."""
        enrollment = await self.get_enrollment(user_id, course_id)
        return enrollment is not None and enrollment.is_active

    async def require_enrollment(self, user_id: UUID, course_id: UUID) -> None:
        """Raise NotEnrolledError unless the user is actively enrolled."""
        if not await self.is_enrolled(user_id, course_id):
            raise NotEnrolledError

    async def enroll_user(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll user in a course.

        Raises:
            AlreadyEnrolledError: If user already enrolled
        """
        enrollment = Enrollment(
            user_id=user_id,
            course_id=course_id,
            status=EnrollmentStatus.ACTIVE.value,
            enrolled_at=datetime.now(UTC),
        )

        result = await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.user_id,
                enrollment.course_id,
                enrollment.status,
                enrollment.enrolled_at,
            ],
        )
        if not result.was_applied:
            raise AlreadyEnrolledError

        logger.info(
            "user_enrolled",
            user_id=str(user_id),
            course_id=str(course_id),
        )

        return enrollment

    async def get_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Get all enrollments for a user."""
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        return [Enrollment.from_row(row) for row in rows]
