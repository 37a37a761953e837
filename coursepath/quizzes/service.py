"""Quiz engine service layer.

Business logic for:
- Quiz delivery by lesson
- Submission: eligibility checks, validation, grading, append-only attempt
- Attempt history (latest first)
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .exceptions import (
    AttemptConflictError,
    QuizNotEnrolledError,
    QuizNotFoundError,
    VideoNotCompletedError,
)
from .models import Quiz, QuizAttempt, QuizQuestion
from .scoring import AnswerInput, QuizGrade, grade_submission


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from coursepath.enrollments.service import EnrollmentService
    from coursepath.video.service import VideoCompletionService

logger = structlog.get_logger(__name__)


class QuizService:
    """Service for quizzes and quiz attempts."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        enrollment_service: "EnrollmentService",
        video_service: "VideoCompletionService",
        max_retries: int = 5,
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.enrollment_service = enrollment_service
        self.video_service = video_service
        self.max_retries = max_retries
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_quiz = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quizzes WHERE id = ?
        """)

        self._get_questions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_questions WHERE quiz_id = ?
        """)

        self._get_quiz_by_lesson = self.session.prepare(f"""
            SELECT quiz_id FROM {self.keyspace}.quizzes_by_lesson
            WHERE lesson_id = ?
        """)

        self._get_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND quiz_id = ?
        """)

        self._get_latest_attempt = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND quiz_id = ?
            LIMIT 1
        """)

        self._insert_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempts
            (user_id, quiz_id, attempt_number, attempt_id, answers, score,
             passed, correct_answers, total_questions, time_taken_seconds,
             submitted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

    # ==========================================================================
    # Quiz Delivery
    # ==========================================================================

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        """Get quiz with its ordered questions."""
        result = await self.session.aexecute(self._get_quiz, [quiz_id])
        row = result.one()
        if not row:
            return None

        question_rows = await self.session.aexecute(self._get_questions, [quiz_id])
        questions = [QuizQuestion.from_row(q) for q in question_rows]
        return Quiz.from_row(row, questions)

    async def get_quiz_for_lesson(self, lesson_id: UUID) -> Quiz | None:
        """Get the quiz owned by a lesson, if any."""
        result = await self.session.aexecute(self._get_quiz_by_lesson, [lesson_id])
        row = result.one()
        if not row:
            return None
        return await self.get_quiz(row.quiz_id)

    # ==========================================================================
    # Attempts
    # ==========================================================================

    async def get_submissions(self, user_id: UUID, quiz_id: UUID) -> list[QuizAttempt]:
        """All attempts of a user for a quiz, latest first."""
        rows = await self.session.aexecute(self._get_attempts, [user_id, quiz_id])
        return [QuizAttempt.from_row(row) for row in rows]

    async def get_latest_attempt(
        self, user_id: UUID, quiz_id: UUID
    ) -> QuizAttempt | None:
        """Most recent attempt. This is the one that governs lesson completion."""
        result = await self.session.aexecute(
            self._get_latest_attempt, [user_id, quiz_id]
        )
        row = result.one()
        return QuizAttempt.from_row(row) if row else None

    async def submit_quiz(
        self,
        user_id: UUID,
        quiz_id: UUID,
        answers: list[AnswerInput],
        time_taken_seconds: int,
    ) -> tuple[QuizAttempt, QuizGrade]:
        """Grade a submission and record it as a new attempt.

        Every check runs before the write, so a rejected submission is never
        recorded.

        Raises:
            QuizNotFoundError: Unknown quiz
            QuizNotEnrolledError: Caller not enrolled in the quiz's course
            VideoNotCompletedError: Lesson video not completed yet
            EmptyQuizError / InvalidSubmissionError: Malformed submission
            AttemptConflictError: Attempt number retries exhausted
        """
        quiz = await self.get_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFoundError

        if quiz.course_id is not None:
            enrolled = await self.enrollment_service.is_enrolled(
                user_id, quiz.course_id
            )
            if not enrolled:
                raise QuizNotEnrolledError

        if quiz.lesson_id is not None:
            watched = await self.video_service.is_video_completed(
                user_id, quiz.lesson_id
            )
            if not watched:
                raise VideoNotCompletedError

        grade = grade_submission(quiz, answers)
        submitted_at = datetime.now(UTC)

        for attempt in range(1, self.max_retries + 1):
            latest = await self.get_latest_attempt(user_id, quiz_id)
            record = QuizAttempt(
                user_id=user_id,
                quiz_id=quiz_id,
                attempt_number=(latest.attempt_number if latest else 0) + 1,
                answers=grade.answers,
                score=grade.score,
                passed=grade.passed,
                correct_answers=grade.correct_answers,
                total_questions=grade.total_questions,
                time_taken_seconds=time_taken_seconds,
                submitted_at=submitted_at,
            )

            result = await self.session.aexecute(
                self._insert_attempt,
                [
                    record.user_id,
                    record.quiz_id,
                    record.attempt_number,
                    record.id,
                    record.answers_json(),
                    record.score,
                    record.passed,
                    record.correct_answers,
                    record.total_questions,
                    record.time_taken_seconds,
                    record.submitted_at,
                ],
            )
            if result.was_applied:
                logger.info(
                    "quiz_submitted",
                    user_id=str(user_id),
                    quiz_id=str(quiz_id),
                    attempt_number=record.attempt_number,
                    score=str(record.score),
                    passed=record.passed,
                )
                return record, grade

            logger.info(
                "quiz_attempt_conflict",
                user_id=str(user_id),
                quiz_id=str(quiz_id),
                attempt_number=record.attempt_number,
                attempt=attempt,
            )

        raise AttemptConflictError
