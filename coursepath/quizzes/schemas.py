"""Pydantic schemas for quizzes.

Questions are delivered without correct-answer flags; grading happens
server-side only.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import QuestionType, Quiz, QuizAttempt
from .scoring import AnswerInput


# ==============================================================================
# Quiz Delivery Schemas
# ==============================================================================


class QuizOptionPublic(BaseModel):
    """Option without its correctness flag."""

    id: UUID
    text: str


class QuizQuestionPublic(BaseModel):
    """Question as shown to the learner."""

    id: UUID
    question_type: QuestionType
    text: str
    points: int
    position: int
    options: list[QuizOptionPublic] = []


class GradedAnswerResponse(BaseModel):
    """Answer of a recorded attempt."""

    model_config = ConfigDict(from_attributes=True)

    question_id: UUID
    selected_option_ids: list[UUID] = []
    text_answer: str | None = None
    is_correct: bool
    points_awarded: int


class QuizAttemptResponse(BaseModel):
    """Recorded quiz attempt."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    quiz_id: UUID
    attempt_number: int
    score: Decimal = Field(description="0-100 percentage")
    passed: bool
    correct_answers: int
    total_questions: int
    time_taken_seconds: int
    submitted_at: datetime
    answers: list[GradedAnswerResponse] = []

    @classmethod
    def from_entity(cls, attempt: QuizAttempt) -> "QuizAttemptResponse":
        """Create response from QuizAttempt entity."""
        return cls.model_validate(attempt)


class QuizResponse(BaseModel):
    """Quiz for a lesson, plus the caller's latest attempt."""

    id: UUID
    lesson_id: UUID | None = None
    course_id: UUID | None = None
    title: str
    description: str | None = None
    passing_score: int
    time_limit_minutes: int | None = None
    total_points: int
    questions: list[QuizQuestionPublic] = []
    latest_attempt: QuizAttemptResponse | None = None

    @classmethod
    def from_entity(
        cls, quiz: Quiz, latest_attempt: QuizAttempt | None = None
    ) -> "QuizResponse":
        """Create response from Quiz entity."""
        return cls(
            id=quiz.id,
            lesson_id=quiz.lesson_id,
            course_id=quiz.course_id,
            title=quiz.title,
            description=quiz.description,
            passing_score=quiz.passing_score,
            time_limit_minutes=quiz.time_limit_minutes,
            total_points=quiz.total_points,
            questions=[
                QuizQuestionPublic(
                    id=question.id,
                    question_type=question.question_type,
                    text=question.text,
                    points=question.points,
                    position=question.position,
                    options=[
                        QuizOptionPublic(id=option.id, text=option.text)
                        for option in question.options
                    ],
                )
                for question in quiz.questions
            ],
            latest_attempt=(
                QuizAttemptResponse.from_entity(latest_attempt)
                if latest_attempt
                else None
            ),
        )


# ==============================================================================
# Submission Schemas
# ==============================================================================


class AnswerRequest(BaseModel):
    """Answer to one question."""

    question_id: UUID
    selected_option_ids: list[UUID] = Field(default_factory=list)
    text_answer: str | None = Field(None, max_length=2000)

    def to_input(self) -> AnswerInput:
        return AnswerInput(
            question_id=self.question_id,
            selected_option_ids=tuple(self.selected_option_ids),
            text_answer=self.text_answer,
        )


class SubmitQuizRequest(BaseModel):
    """Quiz submission."""

    answers: list[AnswerRequest] = Field(default_factory=list)
    time_taken_seconds: int = Field(0, ge=0, description="Elapsed time in seconds")


class SubmitQuizResponse(BaseModel):
    """Result of a submission."""

    score: Decimal
    passed: bool
    correct_answers: int
    total_questions: int
    submission: QuizAttemptResponse


class QuizSubmissionListResponse(BaseModel):
    """Caller's attempts for a quiz, latest first."""

    items: list[QuizAttemptResponse]
    total: int
