"""Tests for quiz endpoints."""

from decimal import Decimal
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from coursepath.quizzes.dependencies import get_quiz_service
from coursepath.quizzes.exceptions import (
    InvalidSubmissionError,
    VideoNotCompletedError,
)
from coursepath.quizzes.models import (
    QuestionType,
    Quiz,
    QuizAttempt,
    QuizOption,
    QuizQuestion,
)
from coursepath.quizzes.scoring import QuizGrade
from coursepath.quizzes.service import QuizService


@pytest.fixture
def quiz() -> Quiz:
    quiz_id = uuid4()
    question = QuizQuestion(
        id=uuid4(),
        quiz_id=quiz_id,
        question_type=QuestionType.TRUE_FALSE.value,
        text="The sky is blue",
        options=[
            QuizOption(id=uuid4(), text="True", is_correct=True),
            QuizOption(id=uuid4(), text="False"),
        ],
    )
    return Quiz(id=quiz_id, lesson_id=uuid4(), title="Sky", questions=[question])


@pytest.fixture
def quiz_service(app) -> Mock:
    service = Mock(spec=QuizService)
    app.dependency_overrides[get_quiz_service] = lambda: service
    return service


class TestGetQuizByLesson:
    """Tests for GET /v1/quizzes/by-lesson/{lesson_id}."""

    def test_requires_authentication(self, client, quiz_service) -> None:
        response = client.get(f"/v1/quizzes/by-lesson/{uuid4()}")
        assert response.status_code == 401

    def test_hides_correct_answers(self, auth_client, quiz_service, quiz) -> None:
        quiz_service.get_quiz_for_lesson = AsyncMock(return_value=quiz)
        quiz_service.get_latest_attempt = AsyncMock(return_value=None)

        response = auth_client.get(f"/v1/quizzes/by-lesson/{quiz.lesson_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(quiz.id)
        assert data["latest_attempt"] is None
        options = data["questions"][0]["options"]
        assert len(options) == 2
        assert all("is_correct" not in option for option in options)

    def test_missing_quiz(self, auth_client, quiz_service) -> None:
        quiz_service.get_quiz_for_lesson = AsyncMock(return_value=None)
        response = auth_client.get(f"/v1/quizzes/by-lesson/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["message"] == "Quiz not found"


class TestSubmitQuiz:
    """Tests for POST /v1/quizzes/{quiz_id}/submissions."""

    def test_submission_recorded(
        self, auth_client, quiz_service, quiz, user_id
    ) -> None:
        question = quiz.questions[0]
        attempt = QuizAttempt(
            user_id=user_id,
            quiz_id=quiz.id,
            attempt_number=1,
            score=Decimal("100.00"),
            passed=True,
            correct_answers=1,
            total_questions=1,
            time_taken_seconds=12,
        )
        grade = QuizGrade(
            score=Decimal("100.00"),
            passed=True,
            correct_answers=1,
            total_questions=1,
            earned_points=1,
            total_points=1,
        )
        quiz_service.submit_quiz = AsyncMock(return_value=(attempt, grade))
        correct = next(iter(question.correct_option_ids))

        response = auth_client.post(
            f"/v1/quizzes/{quiz.id}/submissions",
            json={
                "answers": [
                    {
                        "question_id": str(question.id),
                        "selected_option_ids": [str(correct)],
                    }
                ],
                "time_taken_seconds": 12,
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["passed"] is True
        assert data["submission"]["attempt_number"] == 1
        kwargs = quiz_service.submit_quiz.await_args.kwargs
        assert kwargs["user_id"] == user_id
        assert kwargs["answers"][0].selected_option_ids == (correct,)

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (InvalidSubmissionError(), 400),
            (VideoNotCompletedError(), 403),
        ],
    )
    def test_domain_errors_mapped(
        self, auth_client, quiz_service, error, status_code
    ) -> None:
        quiz_service.submit_quiz = AsyncMock(side_effect=error)
        response = auth_client.post(
            f"/v1/quizzes/{uuid4()}/submissions", json={"answers": []}
        )
        assert response.status_code == status_code
        assert response.json()["message"] == error.message

    def test_negative_time_rejected(self, auth_client, quiz_service) -> None:
        response = auth_client.post(
            f"/v1/quizzes/{uuid4()}/submissions",
            json={"answers": [], "time_taken_seconds": -1},
        )
        assert response.status_code == 422


def test_submission_history(auth_client, quiz_service, user_id) -> None:
    quiz_id = uuid4()
    attempts = [
        QuizAttempt(user_id=user_id, quiz_id=quiz_id, attempt_number=n)
        for n in (2, 1)
    ]
    quiz_service.get_submissions = AsyncMock(return_value=attempts)

    response = auth_client.get(f"/v1/quizzes/{quiz_id}/submissions")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [item["attempt_number"] for item in data["items"]] == [2, 1]
