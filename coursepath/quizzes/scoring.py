"""Quiz validation and grading.

Pure functions, no I/O. A submission is validated as a whole before any
answer is graded, so a malformed submission is rejected without a partial
result.
"""

import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from .exceptions import EmptyQuizError, InvalidSubmissionError
from .models import (
    CHOICE_QUESTION_TYPES,
    GradedAnswer,
    QuestionType,
    Quiz,
    QuizQuestion,
)


_SCORE_QUANTUM = Decimal("0.01")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class AnswerInput:
    """A learner answer before grading."""

    question_id: UUID
    selected_option_ids: tuple[UUID, ...] = ()
    text_answer: str | None = None


@dataclass(frozen=True)
class QuizGrade:
    """Outcome of grading a submission."""

    score: Decimal
    passed: bool
    correct_answers: int
    total_questions: int
    earned_points: int
    total_points: int
    answers: list[GradedAnswer] = field(default_factory=list)


def normalize_text_answer(value: str) -> str:
    """Case-insensitive, whitespace-collapsed form used for short answers."""
    return _WHITESPACE.sub(" ", value).strip().casefold()


def validate_submission(quiz: Quiz, answers: list[AnswerInput]) -> None:
    """Reject empty quizzes and answers that do not belong to the quiz.

    Raises:
        EmptyQuizError: The quiz has no questions
        InvalidSubmissionError: Unknown or repeated question, foreign option,
            or options given for a short-answer question
    """
    if not quiz.questions:
        raise EmptyQuizError

    seen: set[UUID] = set()
    for answer in answers:
        question = quiz.get_question(answer.question_id)
        if question is None:
            raise InvalidSubmissionError(
                f"Question {answer.question_id} does not belong to this quiz"
            )
        if answer.question_id in seen:
            raise InvalidSubmissionError(
                f"Question {answer.question_id} answered more than once"
            )
        seen.add(answer.question_id)

        if question.question_type == QuestionType.SHORT_ANSWER:
            if answer.selected_option_ids:
                raise InvalidSubmissionError(
                    f"Question {question.id} expects a text answer"
                )
            continue

        foreign = set(answer.selected_option_ids) - question.option_ids
        if foreign:
            raise InvalidSubmissionError(
                f"Options do not belong to question {question.id}"
            )


def is_answer_correct(question: QuizQuestion, answer: AnswerInput | None) -> bool:
    """Exact set match for choice questions, normalized match for short answers."""
    if answer is None:
        return False

    if question.question_type in CHOICE_QUESTION_TYPES:
        correct = question.correct_option_ids
        if not correct:
            return False
        if question.question_type != QuestionType.MULTIPLE_CHOICE and len(correct) != 1:
            return False
        return frozenset(answer.selected_option_ids) == correct

    if not answer.text_answer or not question.accepted_answers:
        return False
    accepted = {normalize_text_answer(a) for a in question.accepted_answers}
    return normalize_text_answer(answer.text_answer) in accepted


def compute_score(earned_points: int, total_points: int) -> Decimal:
    """Percentage of points earned, rounded half-up to two decimals."""
    if total_points <= 0:
        return Decimal(0)
    score = Decimal(earned_points) * 100 / Decimal(total_points)
    return score.quantize(_SCORE_QUANTUM, rounding=ROUND_HALF_UP)


def grade_submission(quiz: Quiz, answers: list[AnswerInput]) -> QuizGrade:
    """Validate and grade a submission.

    Unanswered questions count as wrong. ``passed`` compares the rounded
    score with the quiz passing score.
    """
    validate_submission(quiz, answers)

    by_question = {answer.question_id: answer for answer in answers}
    graded: list[GradedAnswer] = []
    earned = 0
    correct_count = 0

    for question in quiz.questions:
        answer = by_question.get(question.id)
        correct = is_answer_correct(question, answer)
        points = question.points if correct else 0
        earned += points
        correct_count += int(correct)
        if answer is not None:
            graded.append(
                GradedAnswer(
                    question_id=question.id,
                    selected_option_ids=list(answer.selected_option_ids),
                    text_answer=answer.text_answer,
                    is_correct=correct,
                    points_awarded=points,
                )
            )

    total_points = quiz.total_points
    score = compute_score(earned, total_points)

    return QuizGrade(
        score=score,
        passed=score >= Decimal(quiz.passing_score),
        correct_answers=correct_count,
        total_questions=len(quiz.questions),
        earned_points=earned,
        total_points=total_points,
        answers=graded,
    )
