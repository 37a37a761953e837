"""Database models for quizzes and quiz attempts.

Cassandra table definitions for:
- Quizzes: one quiz per lesson at most
- Quiz questions: ordered, options stored as JSON text
- Quiz attempts: append-only history per (user, quiz), newest first
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from coursepath.courses.models import ensure_utc_aware


class QuestionType(str, Enum):
    """Quiz question type."""

    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


CHOICE_QUESTION_TYPES = frozenset(
    {
        QuestionType.SINGLE_CHOICE,
        QuestionType.MULTIPLE_CHOICE,
        QuestionType.TRUE_FALSE,
    }
)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

QUIZ_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quizzes (
    id UUID PRIMARY KEY,
    lesson_id UUID,
    course_id UUID,
    title TEXT,
    description TEXT,
    passing_score INT,
    time_limit_minutes INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Options are a JSON array of {id, text, is_correct}
QUIZ_QUESTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_questions (
    quiz_id UUID,
    position INT,
    question_id UUID,
    question_type TEXT,
    text TEXT,
    points INT,
    options TEXT,
    accepted_answers LIST<TEXT>,
    PRIMARY KEY ((quiz_id), position, question_id)
) WITH CLUSTERING ORDER BY (position ASC, question_id ASC)
"""

QUIZZES_BY_LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quizzes_by_lesson (
    lesson_id UUID PRIMARY KEY,
    quiz_id UUID
)
"""

# Attempts are never updated. IF NOT EXISTS on (user, quiz, attempt_number)
# keeps two racing submissions from sharing an attempt number.
QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempts (
    user_id UUID,
    quiz_id UUID,
    attempt_number INT,
    attempt_id UUID,
    answers TEXT,
    score DECIMAL,
    passed BOOLEAN,
    correct_answers INT,
    total_questions INT,
    time_taken_seconds INT,
    submitted_at TIMESTAMP,
    PRIMARY KEY ((user_id, quiz_id), attempt_number)
) WITH CLUSTERING ORDER BY (attempt_number DESC)
"""

QUIZZES_TABLES_CQL = [
    QUIZ_TABLE_CQL,
    QUIZ_QUESTIONS_TABLE_CQL,
    QUIZZES_BY_LESSON_TABLE_CQL,
    QUIZ_ATTEMPTS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class QuizOption:
    """Answer option of a choice question."""

    def __init__(self, id: UUID, text: str, is_correct: bool = False):
        self.id = id
        self.text = text
        self.is_correct = is_correct

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizOption":
        return cls(
            id=UUID(str(data["id"])),
            text=data.get("text", ""),
            is_correct=bool(data.get("is_correct", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": str(self.id), "text": self.text, "is_correct": self.is_correct}


class QuizQuestion:
    """Quiz question.

    Attributes:
        id: Question UUID
        quiz_id: Owning quiz UUID
        question_type: One of QuestionType
        text: Question statement
        points: Point value (at least 1)
        position: Order inside the quiz
        options: Options of choice questions
        accepted_answers: Accepted answers of short-answer questions
    """

    def __init__(
        self,
        id: UUID,
        quiz_id: UUID,
        question_type: str,
        text: str = "",
        points: int = 1,
        position: int = 0,
        options: list[QuizOption] | None = None,
        accepted_answers: list[str] | None = None,
    ):
        self.id = id
        self.quiz_id = quiz_id
        self.question_type = QuestionType(question_type)
        self.text = text
        self.points = max(1, points)
        self.position = position
        self.options = options or []
        self.accepted_answers = accepted_answers or []

    @property
    def option_ids(self) -> frozenset[UUID]:
        return frozenset(option.id for option in self.options)

    @property
    def correct_option_ids(self) -> frozenset[UUID]:
        return frozenset(option.id for option in self.options if option.is_correct)

    @classmethod
    def from_row(cls, row: Any) -> "QuizQuestion":
        """Create QuizQuestion instance from Cassandra row."""
        raw_options = json.loads(row.options or "[]")
        options = [QuizOption.from_dict(item) for item in raw_options]
        return cls(
            id=row.question_id,
            quiz_id=row.quiz_id,
            question_type=row.question_type,
            text=row.text or "",
            points=row.points or 1,
            position=row.position,
            options=options,
            accepted_answers=list(row.accepted_answers or []),
        )

    def __repr__(self) -> str:
        return f"<QuizQuestion {self.id} ({self.question_type.value})>"


class Quiz:
    """Quiz owned by a lesson."""

    def __init__(
        self,
        id: UUID | None = None,
        lesson_id: UUID | None = None,
        course_id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        passing_score: int = 70,
        time_limit_minutes: int | None = None,
        questions: list[QuizQuestion] | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.lesson_id = lesson_id
        self.course_id = course_id
        self.title = title
        self.description = description
        self.passing_score = passing_score
        self.time_limit_minutes = time_limit_minutes
        self.questions = questions or []
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @property
    def total_points(self) -> int:
        return sum(question.points for question in self.questions)

    def get_question(self, question_id: UUID) -> QuizQuestion | None:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    @classmethod
    def from_row(cls, row: Any, questions: list[QuizQuestion]) -> "Quiz":
        """Create Quiz instance from Cassandra row and its question rows."""
        return cls(
            id=row.id,
            lesson_id=row.lesson_id,
            course_id=row.course_id,
            title=row.title or "",
            description=row.description,
            passing_score=row.passing_score if row.passing_score is not None else 70,
            time_limit_minutes=row.time_limit_minutes,
            questions=questions,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return f"<Quiz {self.title} lesson={self.lesson_id}>"


class GradedAnswer:
    """One answer of an attempt, with its grading outcome."""

    def __init__(
        self,
        question_id: UUID,
        selected_option_ids: list[UUID] | None = None,
        text_answer: str | None = None,
        is_correct: bool = False,
        points_awarded: int = 0,
    ):
        self.question_id = question_id
        self.selected_option_ids = selected_option_ids or []
        self.text_answer = text_answer
        self.is_correct = is_correct
        self.points_awarded = points_awarded

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GradedAnswer":
        return cls(
            question_id=UUID(str(data["question_id"])),
            selected_option_ids=[
                UUID(str(i)) for i in data.get("selected_option_ids", [])
            ],
            text_answer=data.get("text_answer"),
            is_correct=bool(data.get("is_correct", False)),
            points_awarded=int(data.get("points_awarded", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": str(self.question_id),
            "selected_option_ids": [str(i) for i in self.selected_option_ids],
            "text_answer": self.text_answer,
            "is_correct": self.is_correct,
            "points_awarded": self.points_awarded,
        }


class QuizAttempt:
    """Immutable quiz attempt.

    Attributes:
        user_id: User UUID
        quiz_id: Quiz UUID
        attempt_number: 1-based, strictly increasing per (user, quiz)
        id: Attempt UUID
        answers: Graded answers
        score: Percentage (0-100, two decimals)
        passed: score >= quiz passing score
        correct_answers: Number of correctly answered questions
        total_questions: Number of questions in the quiz
        time_taken_seconds: Time reported by the client
        submitted_at: Submission timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        quiz_id: UUID,
        attempt_number: int,
        id: UUID | None = None,
        answers: list[GradedAnswer] | None = None,
        score: Decimal = Decimal(0),
        passed: bool = False,
        correct_answers: int = 0,
        total_questions: int = 0,
        time_taken_seconds: int = 0,
        submitted_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.quiz_id = quiz_id
        self.attempt_number = attempt_number
        self.id = id or uuid4()
        self.answers = answers or []
        self.score = score
        self.passed = passed
        self.correct_answers = correct_answers
        self.total_questions = total_questions
        self.time_taken_seconds = time_taken_seconds
        self.submitted_at = ensure_utc_aware(submitted_at) or datetime.now(UTC)

    def answers_json(self) -> str:
        return json.dumps([answer.to_dict() for answer in self.answers])

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        """Create QuizAttempt instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            quiz_id=row.quiz_id,
            attempt_number=row.attempt_number,
            id=row.attempt_id,
            answers=[
                GradedAnswer.from_dict(a) for a in json.loads(row.answers or "[]")
            ],
            score=row.score or Decimal(0),
            passed=bool(row.passed),
            correct_answers=row.correct_answers or 0,
            total_questions=row.total_questions or 0,
            time_taken_seconds=row.time_taken_seconds or 0,
            submitted_at=row.submitted_at,
        )

    def __repr__(self) -> str:
        return (
            f"<QuizAttempt quiz={self.quiz_id} user={self.user_id} "
            f"#{self.attempt_number} score={self.score} passed={self.passed}>"
        )
