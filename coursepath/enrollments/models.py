"""Database models for course enrollments."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from coursepath.courses.models import ensure_utc_aware


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ACTIVE = "active"
    SUSPENDED = "suspended"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partition key: user_id, so "my enrollments" and the enrollment check
# are single-partition reads
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    user_id UUID,
    course_id UUID,
    status TEXT,
    enrolled_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id)
)
"""

ENROLLMENTS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Course enrollment entity.

    Attributes:
        user_id: User UUID
        course_id: Course UUID
        status: Enrollment status (active, suspended)
        enrolled_at: Enrollment timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        status: str = EnrollmentStatus.ACTIVE.value,
        enrolled_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.status = status
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)

    @property
    def is_active(self) -> bool:
        """Check if the enrollment grants access to the course."""
        return self.status == EnrollmentStatus.ACTIVE.value

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            status=row.status or EnrollmentStatus.ACTIVE.value,
            enrolled_at=row.enrolled_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "status": self.status,
            "enrolled_at": self.enrolled_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"({self.status})>"
        )
