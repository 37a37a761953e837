"""Database models for course certificates.

Cassandra table definitions for:
- Certificates: at most one per (user, course), written with IF NOT EXISTS
- Lookup tables by certificate id, public code and user
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from coursepath.courses.models import ensure_utc_aware


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# The partition key is the (user, course) pair itself. INSERT ... IF NOT EXISTS
# on it is the uniqueness constraint for issuance.
CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    user_id UUID,
    course_id UUID,
    certificate_id UUID,
    code TEXT,
    learner_name TEXT,
    course_title TEXT,
    document_url TEXT,
    storage_path TEXT,
    completed_at TIMESTAMP,
    issued_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id))
)
"""

CERTIFICATES_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_id (
    certificate_id UUID PRIMARY KEY,
    user_id UUID,
    course_id UUID
)
"""

CERTIFICATES_BY_CODE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_code (
    code TEXT PRIMARY KEY,
    user_id UUID,
    course_id UUID
)
"""

CERTIFICATES_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_user (
    user_id UUID,
    issued_at TIMESTAMP,
    certificate_id UUID,
    course_id UUID,
    PRIMARY KEY ((user_id), issued_at, certificate_id)
) WITH CLUSTERING ORDER BY (issued_at DESC, certificate_id ASC)
"""

CERTIFICATES_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
    CERTIFICATES_BY_ID_TABLE_CQL,
    CERTIFICATES_BY_CODE_TABLE_CQL,
    CERTIFICATES_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Certificate:
    """Course completion certificate.

    Attributes:
        user_id: Learner UUID
        course_id: Course UUID
        id: Certificate UUID
        code: Public verification code
        learner_name: Name printed on the document
        course_title: Course title printed on the document
        document_url: Public URL of the rendered document
        storage_path: Object path of the document in the document store
        completed_at: When the course was completed
        issued_at: When the certificate was issued
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        code: str,
        id: UUID | None = None,
        learner_name: str = "",
        course_title: str = "",
        document_url: str | None = None,
        storage_path: str | None = None,
        completed_at: datetime | None = None,
        issued_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.code = code
        self.id = id or uuid4()
        self.learner_name = learner_name
        self.course_title = course_title
        self.document_url = document_url
        self.storage_path = storage_path
        self.issued_at = ensure_utc_aware(issued_at) or datetime.now(UTC)
        self.completed_at = ensure_utc_aware(completed_at) or self.issued_at

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            code=row.code,
            id=row.certificate_id,
            learner_name=row.learner_name or "",
            course_title=row.course_title or "",
            document_url=row.document_url,
            storage_path=row.storage_path,
            completed_at=row.completed_at,
            issued_at=row.issued_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "code": self.code,
            "learner_name": self.learner_name,
            "course_title": self.course_title,
            "document_url": self.document_url,
            "completed_at": self.completed_at,
            "issued_at": self.issued_at,
        }

    def __repr__(self) -> str:
        return f"<Certificate {self.code} user={self.user_id} course={self.course_id}>"
