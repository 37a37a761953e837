"""Course catalog API endpoints."""

from uuid import UUID

from fastapi import APIRouter

from coursepath.auth.dependencies import CurrentUser

from .dependencies import CatalogServiceDep, handle_course_error
from .schemas import CourseOutlineResponse
from .service import CourseError


router = APIRouter(prefix="/v1/courses", tags=["courses"])


@router.get(
    "/{course_id}/outline",
    response_model=CourseOutlineResponse,
    summary="Get course outline",
)
async def get_course_outline(
    course_id: UUID,
    catalog: CatalogServiceDep,
    user: CurrentUser,
) -> CourseOutlineResponse:
    """Ordered units and lessons of a course, with the quiz owned by each lesson."""
    try:
        tree = await catalog.require_course_tree(course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    return CourseOutlineResponse.from_tree(tree)
