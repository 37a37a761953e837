"""Video completion service layer.

Merges tracker reports into the stored record. Merge rules:
- watch-time keeps the maximum ever reported
- completed is sticky (stored OR incoming)
- duration follows the latest known real duration
- resume position follows the latest report

Concurrent reports for the same (user, lesson) are serialized with a
lightweight transaction on ``version`` and retried on conflict, so a stale
report can never erase progress written by another tab.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import VideoCompletion, compute_completion_rate
from .schemas import UpdateVideoCompletionRequest


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class VideoCompletionError(Exception):
    """Base video completion error."""

    def __init__(self, message: str, code: str = "video_completion_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class VideoCompletionConflictError(VideoCompletionError):
    """Compare-and-set retries exhausted."""

    def __init__(self, message: str = "Video completion is being updated concurrently"):
        super().__init__(message, "video_completion_conflict")


# ==============================================================================
# Merge
# ==============================================================================


def merge_video_report(
    existing: VideoCompletion | None,
    user_id: UUID,
    lesson_id: UUID,
    report: UpdateVideoCompletionRequest,
    threshold_percent: int,
    now: datetime,
) -> VideoCompletion:
    """Merge one tracker report into the stored record (pure).

    A report completes the video when the client flags it (player ``ended``)
    or when the merged completion rate reaches ``threshold_percent``.
    """
    base = existing or VideoCompletion(
        user_id=user_id, lesson_id=lesson_id, created_at=now
    )

    watch_time = max(base.watch_time_seconds, report.watch_time_seconds)
    total_time = (
        report.total_time_seconds
        if report.total_time_seconds
        else base.total_time_seconds
    )
    rate = compute_completion_rate(watch_time, total_time)

    reached_threshold = total_time > 0 and rate >= Decimal(threshold_percent)
    incoming_completed = bool(report.completed) or reached_threshold

    completed = base.completed or incoming_completed
    completed_at = base.completed_at or (now if completed else None)

    return VideoCompletion(
        user_id=user_id,
        lesson_id=lesson_id,
        watch_time_seconds=watch_time,
        total_time_seconds=total_time,
        last_position_seconds=report.last_position_seconds,
        completion_rate=rate,
        completed=completed,
        completed_at=completed_at,
        created_at=base.created_at,
        updated_at=now,
        version=base.version + 1,
    )


# ==============================================================================
# Video Completion Service
# ==============================================================================


class VideoCompletionService:
    """Service for the per (user, lesson) video completion record."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        threshold_percent: int = 80,
        max_retries: int = 5,
    ):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.threshold_percent = threshold_percent
        self.max_retries = max_retries
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_completion = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_video_completions
            WHERE user_id = ? AND lesson_id = ?
        """)

        self._insert_completion = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lesson_video_completions
            (user_id, lesson_id, watch_time_seconds, total_time_seconds,
             last_position_seconds, completion_rate, completed, completed_at,
             created_at, updated_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_completion = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_video_completions
            SET watch_time_seconds = ?, total_time_seconds = ?,
                last_position_seconds = ?, completion_rate = ?, completed = ?,
                completed_at = ?, updated_at = ?, version = ?
            WHERE user_id = ? AND lesson_id = ?
            IF version = ?
        """)

    async def get_video_completion(
        self, user_id: UUID, lesson_id: UUID
    ) -> VideoCompletion | None:
        """Get the stored completion for a user and lesson."""
        result = await self.session.aexecute(
            self._get_completion, [user_id, lesson_id]
        )
        row = result.one()
        return VideoCompletion.from_row(row) if row else None

    async def is_video_completed(self, user_id: UUID, lesson_id: UUID) -> bool:
        """Check the sticky completed flag for a user and lesson."""
        completion = await self.get_video_completion(user_id, lesson_id)
        return completion is not None and completion.completed

    async def update_video_completion(
        self,
        user_id: UUID,
        lesson_id: UUID,
        report: UpdateVideoCompletionRequest,
    ) -> VideoCompletion:
        """Merge a tracker report into the stored completion.

        Raises:
            VideoCompletionConflictError: If every compare-and-set attempt lost
        """
        for attempt in range(1, self.max_retries + 1):
            existing = await self.get_video_completion(user_id, lesson_id)
            merged = merge_video_report(
                existing,
                user_id,
                lesson_id,
                report,
                self.threshold_percent,
                datetime.now(UTC),
            )

            if await self._write(existing, merged):
                if merged.completed and not (existing and existing.completed):
                    logger.info(
                        "video_completed",
                        user_id=str(user_id),
                        lesson_id=str(lesson_id),
                        watch_time_seconds=merged.watch_time_seconds,
                        total_time_seconds=merged.total_time_seconds,
                    )
                logger.debug(
                    "video_completion_merged",
                    user_id=str(user_id),
                    lesson_id=str(lesson_id),
                    version=merged.version,
                )
                return merged

            logger.info(
                "video_completion_conflict",
                user_id=str(user_id),
                lesson_id=str(lesson_id),
                attempt=attempt,
            )

        raise VideoCompletionConflictError

    async def _write(
        self, existing: VideoCompletion | None, merged: VideoCompletion
    ) -> bool:
        """Compare-and-set write. Returns False when another writer won."""
        if existing is None:
            result = await self.session.aexecute(
                self._insert_completion,
                [
                    merged.user_id,
                    merged.lesson_id,
                    merged.watch_time_seconds,
                    merged.total_time_seconds,
                    merged.last_position_seconds,
                    merged.completion_rate,
                    merged.completed,
                    merged.completed_at,
                    merged.created_at,
                    merged.updated_at,
                    merged.version,
                ],
            )
        else:
            result = await self.session.aexecute(
                self._update_completion,
                [
                    merged.watch_time_seconds,
                    merged.total_time_seconds,
                    merged.last_position_seconds,
                    merged.completion_rate,
                    merged.completed,
                    merged.completed_at,
                    merged.updated_at,
                    merged.version,
                    merged.user_id,
                    merged.lesson_id,
                    existing.version,
                ],
            )
        return bool(result.was_applied)
