"""Tests for course progress endpoints and completion-triggered issuance."""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from coursepath.certificates.dependencies import get_certificate_service
from coursepath.certificates.models import Certificate
from coursepath.certificates.service import (
    CertificateDocumentError,
    CertificateService,
)
from coursepath.progress.dependencies import get_progress_service
from coursepath.progress.models import CourseProgress
from coursepath.progress.service import (
    CompletionRequirementsNotMetError,
    NotEnrolledError,
    ProgressService,
    ProgressUpdateResult,
)


COURSE_ID = uuid4()
LESSON_ID = uuid4()


@pytest.fixture
def services(app):
    progress_service = Mock(spec=ProgressService)
    certificate_service = Mock(spec=CertificateService)
    certificate_service.issue = AsyncMock()
    app.dependency_overrides[get_progress_service] = lambda: progress_service
    app.dependency_overrides[get_certificate_service] = lambda: certificate_service
    return progress_service, certificate_service


def _result(user_id, just_completed: bool) -> ProgressUpdateResult:
    completed_at = datetime(2026, 3, 1, tzinfo=UTC) if just_completed else None
    progress = CourseProgress(
        user_id=user_id,
        course_id=COURSE_ID,
        completed_lessons={LESSON_ID},
        progress_percent=Decimal("100.00") if just_completed else Decimal("50.00"),
        completed=just_completed,
        completed_at=completed_at,
        version=2,
    )
    return ProgressUpdateResult(
        progress=progress,
        lesson_completed=True,
        unit_completed=just_completed,
        course_completed=just_completed,
        progress_percent=progress.progress_percent,
        course_just_completed=just_completed,
    )


URL = f"/v1/progress/courses/{COURSE_ID}/lessons/{LESSON_ID}"


class TestUpdateLessonProgress:
    """Tests for POST /v1/progress/courses/{course_id}/lessons/{lesson_id}."""

    def test_partial_progress(self, auth_client, services, user_id) -> None:
        progress_service, certificate_service = services
        progress_service.update_course_progress = AsyncMock(
            return_value=_result(user_id, just_completed=False)
        )

        response = auth_client.post(URL, json={"completed": True})

        assert response.status_code == 200
        data = response.json()
        assert data["lesson_completed"] is True
        assert data["course_completed"] is False
        assert data["certificate"] is None
        certificate_service.issue.assert_not_awaited()
        kwargs = progress_service.update_course_progress.await_args.kwargs
        assert kwargs == {
            "user_id": user_id,
            "course_id": COURSE_ID,
            "lesson_id": LESSON_ID,
            "asserted_completed": True,
        }

    def test_body_is_optional(self, auth_client, services, user_id) -> None:
        progress_service, _ = services
        progress_service.update_course_progress = AsyncMock(
            return_value=_result(user_id, just_completed=False)
        )

        response = auth_client.post(URL)

        assert response.status_code == 200
        kwargs = progress_service.update_course_progress.await_args.kwargs
        assert kwargs["asserted_completed"] is True

    def test_completion_issues_certificate(
        self, auth_client, services, user_id
    ) -> None:
        progress_service, certificate_service = services
        result = _result(user_id, just_completed=True)
        progress_service.update_course_progress = AsyncMock(return_value=result)
        certificate_service.issue.return_value = Certificate(
            user_id=user_id,
            course_id=COURSE_ID,
            code="CP-1-ABCDEFGHI",
            course_title="Intro",
            document_url="https://example.com/cert.html",
            completed_at=result.progress.completed_at,
        )

        response = auth_client.post(URL, json={"completed": True})

        assert response.status_code == 200
        data = response.json()
        assert data["course_just_completed"] is True
        assert data["certificate"]["code"] == "CP-1-ABCDEFGHI"
        assert data["certificate_error"] is None
        certificate_service.issue.assert_awaited_once_with(
            user_id,
            COURSE_ID,
            learner_name="Ada Learner",
            completed_at=result.progress.completed_at,
        )

    def test_issue_failure_keeps_completion(
        self, auth_client, services, user_id
    ) -> None:
        progress_service, certificate_service = services
        progress_service.update_course_progress = AsyncMock(
            return_value=_result(user_id, just_completed=True)
        )
        certificate_service.issue.side_effect = CertificateDocumentError()

        response = auth_client.post(URL, json={"completed": True})

        assert response.status_code == 200
        data = response.json()
        assert data["course_completed"] is True
        assert data["certificate"] is None
        assert data["certificate_error"] == CertificateDocumentError().message

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (CompletionRequirementsNotMetError(), 400),
            (NotEnrolledError(), 403),
        ],
    )
    def test_errors_mapped(self, auth_client, services, error, status_code) -> None:
        progress_service, _ = services
        progress_service.update_course_progress = AsyncMock(side_effect=error)

        response = auth_client.post(URL, json={"completed": True})

        assert response.status_code == status_code


class TestGetCourseProgress:
    """Tests for GET /v1/progress/courses/{course_id}."""

    def test_no_progress_yet(self, auth_client, services) -> None:
        progress_service, _ = services
        progress_service.get_course_progress = AsyncMock(return_value=None)

        response = auth_client.get(f"/v1/progress/courses/{COURSE_ID}")

        assert response.status_code == 200
        data = response.json()
        assert data["course_id"] == str(COURSE_ID)
        assert data["completed_lessons"] == []
        assert data["completed"] is False

    def test_progress_with_resume_pointer(
        self, auth_client, services, user_id
    ) -> None:
        progress_service, _ = services
        progress = _result(user_id, just_completed=False).progress
        progress.current_lesson_id = LESSON_ID
        progress_service.get_course_progress = AsyncMock(return_value=progress)

        response = auth_client.get(f"/v1/progress/courses/{COURSE_ID}")

        assert response.status_code == 200
        data = response.json()
        assert data["completed_lessons"] == [str(LESSON_ID)]
        assert data["current_lesson_id"] == str(LESSON_ID)

    def test_not_enrolled(self, auth_client, services) -> None:
        progress_service, _ = services
        progress_service.get_course_progress = AsyncMock(
            side_effect=NotEnrolledError()
        )
        response = auth_client.get(f"/v1/progress/courses/{COURSE_ID}")
        assert response.status_code == 403
