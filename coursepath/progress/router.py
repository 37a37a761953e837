"""Course progress API endpoints.

Provides routes for:
- Lesson completion updates, verified against video and quiz stores
- Course progress queries
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, status

from coursepath.auth.dependencies import CurrentUser
from coursepath.certificates.dependencies import CertificateServiceDep
from coursepath.certificates.schemas import CertificateResponse
from coursepath.certificates.service import CertificateError

from .dependencies import ProgressServiceDep, handle_progress_error
from .schemas import (
    CourseProgressResponse,
    UpdateLessonProgressRequest,
    UpdateLessonProgressResponse,
)
from .service import ProgressError


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


@router.post(
    "/courses/{course_id}/lessons/{lesson_id}",
    response_model=UpdateLessonProgressResponse,
    status_code=status.HTTP_200_OK,
    summary="Update lesson progress",
)
async def update_lesson_progress(
    course_id: UUID,
    lesson_id: UUID,
    progress_service: ProgressServiceDep,
    certificate_service: CertificateServiceDep,
    user: CurrentUser,
    data: UpdateLessonProgressRequest | None = None,
) -> UpdateLessonProgressResponse:
    """Recompute course progress after a lesson changed.

    The first time the course becomes completed the certificate is issued.
    An issuance failure is reported in ``certificate_error`` and leaves the
    completed progress in place.
    """
    user_id = UUID(str(user.id))
    asserted = data.completed if data else True

    try:
        result = await progress_service.update_course_progress(
            user_id=user_id,
            course_id=course_id,
            lesson_id=lesson_id,
            asserted_completed=asserted,
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e

    response = UpdateLessonProgressResponse(
        lesson_id=lesson_id,
        lesson_completed=result.lesson_completed,
        unit_completed=result.unit_completed,
        course_completed=result.course_completed,
        progress_percent=result.progress_percent,
        course_just_completed=result.course_just_completed,
        progress=CourseProgressResponse.from_entity(result.progress),
    )

    if result.course_just_completed:
        try:
            certificate = await certificate_service.issue(
                user_id,
                course_id,
                learner_name=user.name,
                completed_at=result.progress.completed_at,
            )
            response.certificate = CertificateResponse.model_validate(certificate)
        except CertificateError as e:
            logger.warning(
                "certificate_issue_after_completion_failed",
                user_id=str(user_id),
                course_id=str(course_id),
                code=e.code,
                error=e.message,
            )
            response.certificate_error = e.message

    return response


@router.get(
    "/courses/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Get the current user's progress in a course, with resume pointers."""
    try:
        progress = await progress_service.get_course_progress(
            UUID(str(user.id)), course_id
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e

    if progress is None:
        return CourseProgressResponse.empty(course_id)
    return CourseProgressResponse.from_entity(progress)
