"""Course certificate API endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from coursepath.auth.dependencies import AdminUser, CurrentUser

from .dependencies import CertificateServiceDep, handle_certificate_error
from .schemas import (
    CertificateDocumentResponse,
    CertificateListResponse,
    CertificateResponse,
    CertificateVerificationResponse,
    GenerateCertificateRequest,
)
from .service import CertificateError


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


@router.post(
    "",
    response_model=CertificateResponse,
    status_code=status.HTTP_200_OK,
    summary="Generate certificate",
)
async def generate_certificate(
    data: GenerateCertificateRequest,
    certificate_service: CertificateServiceDep,
    user: CurrentUser,
) -> CertificateResponse:
    """Create or fetch the certificate of a completed course.

    Repeated calls return the same certificate.
    """
    try:
        certificate = await certificate_service.generate_certificate(
            UUID(str(user.id)), data.course_id, learner_name=user.name
        )
    except CertificateError as e:
        raise handle_certificate_error(e) from e

    return CertificateResponse.model_validate(certificate)


@router.get(
    "/my",
    response_model=CertificateListResponse,
    summary="Get my certificates",
)
async def get_my_certificates(
    certificate_service: CertificateServiceDep,
    user: CurrentUser,
) -> CertificateListResponse:
    """Get all certificates of the current user, newest first."""
    certificates = await certificate_service.list_user_certificates(
        UUID(str(user.id))
    )
    return CertificateListResponse(
        items=[CertificateResponse.model_validate(c) for c in certificates],
        total=len(certificates),
    )


@router.get(
    "/verify/{code}",
    response_model=CertificateVerificationResponse,
    summary="Verify certificate",
)
async def verify_certificate(
    code: str,
    certificate_service: CertificateServiceDep,
) -> CertificateVerificationResponse:
    """Verify a certificate by its public code."""
    try:
        certificate = await certificate_service.verify_certificate(code)
    except CertificateError as e:
        raise handle_certificate_error(e) from e

    return CertificateVerificationResponse.from_entity(certificate)


@router.get(
    "/users/{user_id}",
    response_model=CertificateListResponse,
    summary="Get user certificates (admin)",
)
async def get_user_certificates(
    user_id: UUID,
    certificate_service: CertificateServiceDep,
    _admin: AdminUser,
) -> CertificateListResponse:
    """Get all certificates of a user."""
    certificates = await certificate_service.list_user_certificates(user_id)
    return CertificateListResponse(
        items=[CertificateResponse.model_validate(c) for c in certificates],
        total=len(certificates),
    )


@router.get(
    "/{certificate_id}/download",
    response_model=CertificateDocumentResponse,
    summary="Download certificate",
)
async def download_certificate(
    certificate_id: UUID,
    certificate_service: CertificateServiceDep,
    user: CurrentUser,
) -> CertificateDocumentResponse:
    """Get the document URL of a certificate, regenerating a missing document."""
    try:
        url = await certificate_service.get_document_url(
            UUID(str(user.id)), certificate_id
        )
    except CertificateError as e:
        raise handle_certificate_error(e) from e

    return CertificateDocumentResponse(certificate_id=certificate_id, url=url)


@router.get(
    "/{certificate_id}/view",
    response_model=CertificateDocumentResponse,
    summary="View certificate",
)
async def view_certificate(
    certificate_id: UUID,
    certificate_service: CertificateServiceDep,
    user: CurrentUser,
) -> CertificateDocumentResponse:
    """Get the document URL to display a certificate."""
    try:
        url = await certificate_service.get_document_url(
            UUID(str(user.id)), certificate_id
        )
    except CertificateError as e:
        raise handle_certificate_error(e) from e

    return CertificateDocumentResponse(certificate_id=certificate_id, url=url)
