"""Course progress service layer (completion aggregator).

The aggregator never trusts the caller's completion claim. For the lesson
being touched it re-reads the video completion and the latest quiz attempt,
derives the lesson verdict, rebuilds units and course from the stored set of
completed lessons and persists the whole state.

Verification happens before any write. Writes are compare-and-set on
``version`` so concurrent recomputations for different lessons of the same
course cannot lose each other's lesson. A recomputation that yields the
stored state performs no write at all.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .aggregator import ProgressSnapshot, is_lesson_complete, recompute_progress
from .models import CourseProgress


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from coursepath.courses.service import CourseCatalogService
    from coursepath.enrollments.service import EnrollmentService
    from coursepath.quizzes.service import QuizService
    from coursepath.video.service import VideoCompletionService

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotEnrolledError(ProgressError):
    """User not enrolled in course."""

    def __init__(self, message: str = "User not enrolled in course"):
        super().__init__(message, "not_enrolled")


class CourseNotFoundError(ProgressError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class LessonNotFoundError(ProgressError):
    """Lesson is not part of the course."""

    def __init__(self, message: str = "Lesson not found in course"):
        super().__init__(message, "lesson_not_found")


class CompletionRequirementsNotMetError(ProgressError):
    """Caller asserted completion the stores cannot confirm."""

    def __init__(self, message: str = "Lesson requirements not yet met"):
        super().__init__(message, "completion_requirements_not_met")


class ProgressConflictError(ProgressError):
    """Compare-and-set retries exhausted."""

    def __init__(self, message: str = "Course progress is being updated concurrently"):
        super().__init__(message, "progress_conflict")


@dataclass
class ProgressUpdateResult:
    """Outcome of one aggregation."""

    progress: CourseProgress
    lesson_completed: bool
    unit_completed: bool
    course_completed: bool
    progress_percent: Decimal
    course_just_completed: bool = False


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Completion aggregator and course progress store."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        catalog: "CourseCatalogService",
        enrollment_service: "EnrollmentService",
        video_service: "VideoCompletionService",
        quiz_service: "QuizService",
        max_retries: int = 5,
    ):
        """Initialize with Cassandra session and the source-of-truth services."""
        self.session = session
        self.keyspace = keyspace
        self.catalog = catalog
        self.enrollment_service = enrollment_service
        self.video_service = video_service
        self.quiz_service = quiz_service
        self.max_retries = max_retries
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_progress
            WHERE user_id = ? AND course_id = ?
        """)

        self._insert_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_progress
            (user_id, course_id, completed_lessons, completed_units,
             progress_percent, completed, current_lesson_id, current_unit_id,
             last_accessed_at, completed_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_progress
            SET completed_lessons = ?, completed_units = ?, progress_percent = ?,
                completed = ?, current_lesson_id = ?, current_unit_id = ?,
                last_accessed_at = ?, completed_at = ?, version = ?
            WHERE user_id = ? AND course_id = ?
            IF version = ?
        """)

    async def get_progress(
        self, user_id: UUID, course_id: UUID
    ) -> CourseProgress | None:
        """Get the persisted progress of a user in a course."""
        result = await self.session.aexecute(self._get_progress, [user_id, course_id])
        row = result.one()
        return CourseProgress.from_row(row) if row else None

    async def get_course_progress(
        self, user_id: UUID, course_id: UUID
    ) -> CourseProgress | None:
        """Read progress for an enrolled user.

        Raises:
            NotEnrolledError: User not enrolled in course
        """
        if not await self.enrollment_service.is_enrolled(user_id, course_id):
            raise NotEnrolledError
        return await self.get_progress(user_id, course_id)

    async def verify_lesson(
        self, user_id: UUID, lesson_id: UUID, quiz_id: UUID | None
    ) -> bool:
        """Recompute a lesson verdict from the video and quiz stores."""
        video_completed = await self.video_service.is_video_completed(
            user_id, lesson_id
        )

        latest_passed: bool | None = None
        if quiz_id is not None and video_completed:
            latest = await self.quiz_service.get_latest_attempt(user_id, quiz_id)
            latest_passed = latest.passed if latest else None

        return is_lesson_complete(video_completed, quiz_id is not None, latest_passed)

    async def update_course_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        asserted_completed: bool,
    ) -> ProgressUpdateResult:
        """Recompute and persist course progress after a lesson changed.

        Raises:
            NotEnrolledError: User not enrolled in course
            CourseNotFoundError / LessonNotFoundError: Unknown course or lesson
            CompletionRequirementsNotMetError: Completion asserted but not verified
            ProgressConflictError: Compare-and-set retries exhausted
        """
        if not await self.enrollment_service.is_enrolled(user_id, course_id):
            raise NotEnrolledError

        tree = await self.catalog.get_course_tree(course_id)
        if tree is None:
            raise CourseNotFoundError
        located = tree.locate(lesson_id)
        if located is None:
            raise LessonNotFoundError
        unit, lesson = located

        lesson_completed = await self.verify_lesson(user_id, lesson_id, lesson.quiz_id)
        if asserted_completed and not lesson_completed:
            logger.info(
                "lesson_completion_rejected",
                user_id=str(user_id),
                course_id=str(course_id),
                lesson_id=str(lesson_id),
            )
            raise CompletionRequirementsNotMetError

        for attempt in range(1, self.max_retries + 1):
            existing = await self.get_progress(user_id, course_id)
            previous = existing.completed_lessons if existing else frozenset()
            snapshot = recompute_progress(
                tree, previous, lesson_id, unit.id, lesson_completed
            )

            if existing is not None and _matches(existing, snapshot):
                return _result(existing, snapshot, unit.id, lesson_id, False)

            progress = _build_progress(user_id, course_id, existing, snapshot)
            if await self._write(existing, progress):
                just_completed = progress.completed and not (
                    existing is not None and existing.completed
                )
                if just_completed:
                    logger.info(
                        "course_completed",
                        user_id=str(user_id),
                        course_id=str(course_id),
                    )
                logger.debug(
                    "course_progress_updated",
                    user_id=str(user_id),
                    course_id=str(course_id),
                    lesson_id=str(lesson_id),
                    progress_percent=str(progress.progress_percent),
                )
                return _result(progress, snapshot, unit.id, lesson_id, just_completed)

            logger.info(
                "course_progress_conflict",
                user_id=str(user_id),
                course_id=str(course_id),
                attempt=attempt,
            )

        raise ProgressConflictError

    async def _write(
        self, existing: CourseProgress | None, progress: CourseProgress
    ) -> bool:
        """Compare-and-set write. Returns False when another writer won."""
        if existing is None:
            result = await self.session.aexecute(
                self._insert_progress,
                [
                    progress.user_id,
                    progress.course_id,
                    set(progress.completed_lessons),
                    set(progress.completed_units),
                    progress.progress_percent,
                    progress.completed,
                    progress.current_lesson_id,
                    progress.current_unit_id,
                    progress.last_accessed_at,
                    progress.completed_at,
                    progress.version,
                ],
            )
        else:
            result = await self.session.aexecute(
                self._update_progress,
                [
                    set(progress.completed_lessons),
                    set(progress.completed_units),
                    progress.progress_percent,
                    progress.completed,
                    progress.current_lesson_id,
                    progress.current_unit_id,
                    progress.last_accessed_at,
                    progress.completed_at,
                    progress.version,
                    progress.user_id,
                    progress.course_id,
                    existing.version,
                ],
            )
        return bool(result.was_applied)


def _matches(existing: CourseProgress, snapshot: ProgressSnapshot) -> bool:
    return (
        existing.completed_lessons == snapshot.completed_lessons
        and existing.completed_units == snapshot.completed_units
        and existing.progress_percent == snapshot.progress_percent
        and existing.completed == snapshot.completed
        and existing.current_lesson_id == snapshot.current_lesson_id
        and existing.current_unit_id == snapshot.current_unit_id
    )


def _build_progress(
    user_id: UUID,
    course_id: UUID,
    existing: CourseProgress | None,
    snapshot: ProgressSnapshot,
) -> CourseProgress:
    now = datetime.now(UTC)
    completed_at = None
    if snapshot.completed:
        completed_at = (existing.completed_at if existing else None) or now

    return CourseProgress(
        user_id=user_id,
        course_id=course_id,
        completed_lessons=snapshot.completed_lessons,
        completed_units=snapshot.completed_units,
        progress_percent=snapshot.progress_percent,
        completed=snapshot.completed,
        current_lesson_id=snapshot.current_lesson_id,
        current_unit_id=snapshot.current_unit_id,
        last_accessed_at=now,
        completed_at=completed_at,
        version=(existing.version if existing else 0) + 1,
    )


def _result(
    progress: CourseProgress,
    snapshot: ProgressSnapshot,
    unit_id: UUID,
    lesson_id: UUID,
    just_completed: bool,
) -> ProgressUpdateResult:
    return ProgressUpdateResult(
        progress=progress,
        lesson_completed=lesson_id in snapshot.completed_lessons,
        unit_completed=unit_id in snapshot.completed_units,
        course_completed=snapshot.completed,
        progress_percent=snapshot.progress_percent,
        course_just_completed=just_completed,
    )
