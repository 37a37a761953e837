"""Pydantic schemas for course certificates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Certificate


class GenerateCertificateRequest(BaseModel):
    """Request to generate (or fetch) the certificate of a completed course."""

    course_id: UUID = Field(..., description="Completed course UUID")


class CertificateResponse(BaseModel):
    """Certificate response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    course_id: UUID
    code: str
    course_title: str = ""
    document_url: str | None = None
    completed_at: datetime
    issued_at: datetime


class CertificateListResponse(BaseModel):
    """Certificates of a user, newest first."""

    items: list[CertificateResponse]
    total: int


class CertificateDocumentResponse(BaseModel):
    """Location of a certificate document."""

    certificate_id: UUID
    url: str


class CertificateVerificationResponse(BaseModel):
    """Public verification result for a certificate code."""

    valid: bool = True
    code: str
    learner_id: UUID
    learner_name: str
    course_id: UUID
    course_title: str
    completed_at: datetime
    issued_at: datetime

    @classmethod
    def from_entity(cls, entity: Certificate) -> "CertificateVerificationResponse":
        """Create response from entity."""
        return cls(
            code=entity.code,
            learner_id=entity.user_id,
            learner_name=entity.learner_name,
            course_id=entity.course_id,
            course_title=entity.course_title,
            completed_at=entity.completed_at,
            issued_at=entity.issued_at,
        )
