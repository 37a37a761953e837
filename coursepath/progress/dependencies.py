"""FastAPI dependencies for course progress.

Provides dependency injection for:
- Progress service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import (
    ProgressError,
    ProgressService,
)


async def get_progress_service(request: Request) -> ProgressService:
    """Get progress service from app state.

    Args:
        request: FastAPI request

    Returns:
        ProgressService instance
    """
    app_state = request.app.state
    if not hasattr(app_state, "progress_service") or not app_state.progress_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return app_state.progress_service


# Type alias for dependency injection
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]


def handle_progress_error(error: ProgressError) -> HTTPException:
    """Convert progress errors to HTTP exceptions.

    Args:
        error: Progress error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "not_enrolled": status.HTTP_403_FORBIDDEN,
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "lesson_not_found": status.HTTP_404_NOT_FOUND,
        "completion_requirements_not_met": status.HTTP_400_BAD_REQUEST,
        "progress_conflict": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
