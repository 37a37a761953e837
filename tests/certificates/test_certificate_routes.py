"""Tests for certificate endpoints."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from coursepath.auth.dependencies import get_current_user
from coursepath.auth.permissions import UserRole
from coursepath.auth.schemas import UserResponse
from coursepath.certificates.dependencies import get_certificate_service
from coursepath.certificates.models import Certificate
from coursepath.certificates.service import (
    CertificateDocumentError,
    CertificateNotFoundError,
    CertificateService,
    CourseNotCompletedError,
    NotCertificateOwnerError,
)


@pytest.fixture
def certificate_service(app) -> Mock:
    service = Mock(spec=CertificateService)
    app.dependency_overrides[get_certificate_service] = lambda: service
    return service


@pytest.fixture
def certificate(user_id) -> Certificate:
    return Certificate(
        user_id=user_id,
        course_id=uuid4(),
        code="CERT-1-ABCDEFGHI",
        learner_name="Ada Learner",
        course_title="Intro to Testing",
        document_url="https://storage.example.com/cert.html",
        completed_at=datetime(2026, 3, 14, tzinfo=UTC),
    )


class TestGenerate:
    """Tests for POST /v1/certificates."""

    def test_generate(
        self, auth_client, certificate_service, certificate, user_id
    ) -> None:
        certificate_service.generate_certificate = AsyncMock(
            return_value=certificate
        )

        response = auth_client.post(
            "/v1/certificates", json={"course_id": str(certificate.course_id)}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(certificate.id)
        assert data["code"] == certificate.code
        certificate_service.generate_certificate.assert_awaited_once_with(
            user_id, certificate.course_id, learner_name="Ada Learner"
        )

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (CourseNotCompletedError(), 400),
            (CertificateDocumentError(), 503),
        ],
    )
    def test_errors_mapped(
        self, auth_client, certificate_service, error, status_code
    ) -> None:
        certificate_service.generate_certificate = AsyncMock(side_effect=error)

        response = auth_client.post(
            "/v1/certificates", json={"course_id": str(uuid4())}
        )

        assert response.status_code == status_code
        assert response.json()["message"] == error.message


def test_my_certificates(auth_client, certificate_service, certificate) -> None:
    certificate_service.list_user_certificates = AsyncMock(
        return_value=[certificate]
    )

    response = auth_client.get("/v1/certificates/my")

    assert response.status_code == 200
    assert response.json()["total"] == 1


class TestVerify:
    """Tests for the public verification endpoint."""

    def test_verify_is_public(self, client, certificate_service, certificate) -> None:
        certificate_service.verify_certificate = AsyncMock(return_value=certificate)

        response = client.get(f"/v1/certificates/verify/{certificate.code}")

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["learner_name"] == "Ada Learner"
        assert data["course_title"] == "Intro to Testing"

    def test_unknown_code(self, client, certificate_service) -> None:
        certificate_service.verify_certificate = AsyncMock(
            side_effect=CertificateNotFoundError()
        )
        response = client.get("/v1/certificates/verify/CERT-0-NOPE")
        assert response.status_code == 404


class TestDocument:
    """Tests for download and view."""

    @pytest.mark.parametrize("action", ["download", "view"])
    def test_owner_gets_url(
        self, auth_client, certificate_service, certificate, action
    ) -> None:
        certificate_service.get_document_url = AsyncMock(
            return_value=certificate.document_url
        )

        response = auth_client.get(f"/v1/certificates/{certificate.id}/{action}")

        assert response.status_code == 200
        assert response.json() == {
            "certificate_id": str(certificate.id),
            "url": certificate.document_url,
        }

    def test_other_learner_forbidden(self, auth_client, certificate_service) -> None:
        certificate_service.get_document_url = AsyncMock(
            side_effect=NotCertificateOwnerError()
        )
        response = auth_client.get(f"/v1/certificates/{uuid4()}/download")
        assert response.status_code == 403


def test_admin_lists_user_certificates(
    app, client, certificate_service, certificate
) -> None:
    admin = UserResponse(
        id=uuid4(), email="admin@example.com", name="Admin", role=UserRole.ADMIN.value
    )
    app.dependency_overrides[get_current_user] = lambda: admin
    certificate_service.list_user_certificates = AsyncMock(
        return_value=[certificate]
    )

    response = client.get(f"/v1/certificates/users/{certificate.user_id}")

    assert response.status_code == 200
    certificate_service.list_user_certificates.assert_awaited_once_with(
        certificate.user_id
    )
