"""Quiz API endpoints.

Provides routes for:
- Quiz delivery by lesson (without correct answers)
- Submissions and attempt history
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from coursepath.auth.dependencies import CurrentUser

from .dependencies import QuizServiceDep, handle_quiz_error
from .exceptions import QuizError
from .schemas import (
    QuizAttemptResponse,
    QuizResponse,
    QuizSubmissionListResponse,
    SubmitQuizRequest,
    SubmitQuizResponse,
)


router = APIRouter(prefix="/v1/quizzes", tags=["quizzes"])


@router.get(
    "/by-lesson/{lesson_id}",
    response_model=QuizResponse,
    summary="Get quiz for lesson",
)
async def get_quiz_by_lesson(
    lesson_id: UUID,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> QuizResponse:
    """Quiz owned by a lesson with the caller's latest attempt."""
    quiz = await quiz_service.get_quiz_for_lesson(lesson_id)
    if quiz is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Quiz not found",
        )

    latest = await quiz_service.get_latest_attempt(UUID(str(user.id)), quiz.id)
    return QuizResponse.from_entity(quiz, latest)


@router.post(
    "/{quiz_id}/submissions",
    response_model=SubmitQuizResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit quiz",
)
async def submit_quiz(
    quiz_id: UUID,
    data: SubmitQuizRequest,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> SubmitQuizResponse:
    """Grade the answers and record a new attempt."""
    try:
        attempt, grade = await quiz_service.submit_quiz(
            user_id=UUID(str(user.id)),
            quiz_id=quiz_id,
            answers=[answer.to_input() for answer in data.answers],
            time_taken_seconds=data.time_taken_seconds,
        )
    except QuizError as e:
        raise handle_quiz_error(e) from e

    return SubmitQuizResponse(
        score=grade.score,
        passed=grade.passed,
        correct_answers=grade.correct_answers,
        total_questions=grade.total_questions,
        submission=QuizAttemptResponse.from_entity(attempt),
    )


@router.get(
    "/{quiz_id}/submissions",
    response_model=QuizSubmissionListResponse,
    summary="Get my submissions",
)
async def get_quiz_submissions(
    quiz_id: UUID,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> QuizSubmissionListResponse:
    """Caller's attempts for a quiz, latest first."""
    attempts = await quiz_service.get_submissions(UUID(str(user.id)), quiz_id)
    return QuizSubmissionListResponse(
        items=[QuizAttemptResponse.from_entity(a) for a in attempts],
        total=len(attempts),
    )
