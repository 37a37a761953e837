"""Pydantic schemas for video completion tracking."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UpdateVideoCompletionRequest(BaseModel):
    """A tracker report for one lesson.

    Reports are merged, never applied as overwrites: watch-time keeps the
    maximum and the completed flag is OR-ed with what is stored.
    """

    watch_time_seconds: int = Field(..., ge=0, description="Accumulated watch-time")
    total_time_seconds: int | None = Field(
        None,
        ge=0,
        description="Video duration; omitted while the client only has an estimate",
    )
    last_position_seconds: int = Field(0, ge=0, description="Resume position")
    completed: bool | None = Field(
        None,
        description="Client completion flag (set on player ended)",
    )


class VideoCompletionResponse(BaseModel):
    """Video completion response."""

    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    watch_time_seconds: int
    total_time_seconds: int
    last_position_seconds: int
    completion_rate: Decimal = Field(description="0-100 percentage")
    completed: bool
    completed_at: datetime | None = None
    updated_at: datetime | None = None
