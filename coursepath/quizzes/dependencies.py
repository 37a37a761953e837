"""FastAPI dependencies for quizzes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .exceptions import QuizError
from .service import QuizService


async def get_quiz_service(request: Request) -> QuizService:
    """Get quiz service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "quiz_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Quiz service not available",
        )
    return app_state.quiz_service


QuizServiceDep = Annotated[QuizService, Depends(get_quiz_service)]


def handle_quiz_error(error: QuizError) -> HTTPException:
    """Convert quiz errors to HTTP exceptions."""
    status_map = {
        "quiz_not_found": status.HTTP_404_NOT_FOUND,
        "empty_quiz": status.HTTP_400_BAD_REQUEST,
        "invalid_submission": status.HTTP_400_BAD_REQUEST,
        "not_enrolled": status.HTTP_403_FORBIDDEN,
        "video_not_completed": status.HTTP_403_FORBIDDEN,
        "attempt_conflict": status.HTTP_409_CONFLICT,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
