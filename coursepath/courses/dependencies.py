"""FastAPI dependencies for the course catalog."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CourseCatalogService, CourseError


async def get_catalog_service(request: Request) -> CourseCatalogService:
    """Get catalog service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "catalog_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Course catalog not available",
        )
    return app_state.catalog_service


CatalogServiceDep = Annotated[CourseCatalogService, Depends(get_catalog_service)]


def handle_course_error(error: CourseError) -> HTTPException:
    """Convert catalog errors to HTTP exceptions."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "lesson_not_found": status.HTTP_404_NOT_FOUND,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
