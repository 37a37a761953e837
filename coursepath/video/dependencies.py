"""FastAPI dependencies for video completion tracking."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import VideoCompletionError, VideoCompletionService


async def get_video_service(request: Request) -> VideoCompletionService:
    """Get video completion service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "video_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Video completion service not available",
        )
    return app_state.video_service


VideoServiceDep = Annotated[VideoCompletionService, Depends(get_video_service)]


def handle_video_error(error: VideoCompletionError) -> HTTPException:
    """Convert video completion errors to HTTP exceptions."""
    status_map = {
        "video_completion_conflict": status.HTTP_409_CONFLICT,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
