"""Course enrollment API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from coursepath.auth.dependencies import CurrentUser
from coursepath.courses.dependencies import CatalogServiceDep

from .dependencies import EnrollmentServiceDep, handle_enrollment_error
from .schemas import EnrollmentListResponse, EnrollmentResponse, EnrollRequest
from .service import EnrollmentError


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll_in_course(
    data: EnrollRequest,
    enrollment_service: EnrollmentServiceDep,
    catalog: CatalogServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Enroll current user in a course."""
    course = await catalog.get_course(data.course_id)
    if not course:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Course not found",
        )

    try:
        enrollment = await enrollment_service.enroll_user(
            UUID(str(user.id)), data.course_id
        )
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e

    return EnrollmentResponse.model_validate(enrollment)


@router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    """Get all course enrollments for current user."""
    enrollments = await enrollment_service.get_user_enrollments(UUID(str(user.id)))
    return EnrollmentListResponse(
        items=[EnrollmentResponse.model_validate(e) for e in enrollments],
        total=len(enrollments),
    )
