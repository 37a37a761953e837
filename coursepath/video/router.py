"""Video completion API endpoints.

Provides routes for:
- Reading the caller's completion for a lesson
- Merging a tracker report into it
"""

from uuid import UUID

from fastapi import APIRouter

from coursepath.auth.dependencies import CurrentUser

from .dependencies import VideoServiceDep, handle_video_error
from .schemas import UpdateVideoCompletionRequest, VideoCompletionResponse
from .service import VideoCompletionError


router = APIRouter(prefix="/v1/video-completions", tags=["video"])


@router.get(
    "/{lesson_id}",
    response_model=VideoCompletionResponse | None,
    summary="Get video completion",
)
async def get_video_completion(
    lesson_id: UUID,
    video_service: VideoServiceDep,
    user: CurrentUser,
) -> VideoCompletionResponse | None:
    """Stored completion for the caller, or null when nothing was reported yet."""
    completion = await video_service.get_video_completion(UUID(str(user.id)), lesson_id)
    if completion is None:
        return None
    return VideoCompletionResponse.model_validate(completion)


@router.put(
    "/{lesson_id}",
    response_model=VideoCompletionResponse,
    summary="Merge video completion report",
)
async def update_video_completion(
    lesson_id: UUID,
    data: UpdateVideoCompletionRequest,
    video_service: VideoServiceDep,
    user: CurrentUser,
) -> VideoCompletionResponse:
    """Merge a tracker report (max watch-time, sticky completed flag)."""
    try:
        completion = await video_service.update_video_completion(
            UUID(str(user.id)), lesson_id, data
        )
    except VideoCompletionError as e:
        raise handle_video_error(e) from e
    return VideoCompletionResponse.model_validate(completion)
