"""Tests for the client-side quiz session and its countdown."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import httpx
import pytest

from coursepath.quizzes.exceptions import QuizSessionStateError
from coursepath.quizzes.schemas import (
    QuizAttemptResponse,
    QuizResponse,
    SubmitQuizResponse,
)
from coursepath.quizzes.session import QuizSession, QuizSessionState


def _response(quiz_id, passed: bool) -> SubmitQuizResponse:
    score = Decimal("100.00") if passed else Decimal("0.00")
    return SubmitQuizResponse(
        score=score,
        passed=passed,
        correct_answers=int(passed),
        total_questions=1,
        submission=QuizAttemptResponse(
            id=uuid4(),
            quiz_id=quiz_id,
            attempt_number=1,
            score=score,
            passed=passed,
            correct_answers=int(passed),
            total_questions=1,
            time_taken_seconds=0,
            submitted_at=datetime.now(UTC),
        ),
    )


@pytest.fixture
def quiz_id():
    return uuid4()


@pytest.fixture
def submit(quiz_id):
    return AsyncMock(return_value=_response(quiz_id, passed=True))


class TestTransitions:
    """Tests for the session state machine."""

    def test_answer_before_start_rejected(self, quiz_id, submit) -> None:
        session = QuizSession(quiz_id, submit)
        with pytest.raises(QuizSessionStateError):
            session.answer(uuid4(), (uuid4(),))

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, quiz_id, submit) -> None:
        session = QuizSession(quiz_id, submit)
        session.start()
        with pytest.raises(QuizSessionStateError):
            session.start()

    @pytest.mark.asyncio
    async def test_manual_submit(self, quiz_id, submit) -> None:
        question_id = uuid4()
        option_id = uuid4()
        session = QuizSession(quiz_id, submit, question_ids=frozenset({question_id}))
        session.start()
        session.answer(question_id, (uuid4(),))
        session.answer(question_id, (option_id,))

        result = await session.submit()

        assert session.state == QuizSessionState.SUBMITTED
        assert session.outcome == "passed"
        assert session.auto_submitted is False
        assert result.passed is True
        sent_quiz_id, answers, _elapsed = submit.await_args.args
        assert sent_quiz_id == quiz_id
        assert len(answers) == 1
        assert answers[0].selected_option_ids == (option_id,)

    @pytest.mark.asyncio
    async def test_answer_after_submit_rejected(self, quiz_id, submit) -> None:
        session = QuizSession(quiz_id, submit)
        session.start()
        await session.submit()
        with pytest.raises(QuizSessionStateError):
            session.answer(uuid4(), text_answer="late")
        with pytest.raises(QuizSessionStateError):
            await session.submit()

    @pytest.mark.asyncio
    async def test_foreign_question_rejected(self, quiz_id, submit) -> None:
        session = QuizSession(quiz_id, submit, question_ids=frozenset({uuid4()}))
        session.start()
        with pytest.raises(QuizSessionStateError):
            session.answer(uuid4(), text_answer="x")

    @pytest.mark.asyncio
    async def test_failed_outcome(self, quiz_id) -> None:
        submit = AsyncMock(return_value=_response(quiz_id, passed=False))
        session = QuizSession(quiz_id, submit)
        session.start()
        await session.submit()
        assert session.outcome == "failed"


class TestCountdown:
    """Tests for timed quizzes."""

    @pytest.mark.asyncio
    async def test_expiry_auto_submits_current_answers(
        self, quiz_id, submit
    ) -> None:
        question_id = uuid4()
        session = QuizSession(
            quiz_id, submit, time_limit_seconds=0.05, tick_seconds=0.01
        )
        session.start()
        session.answer(question_id, text_answer="held")

        result = await session.wait()

        assert result is not None
        assert session.auto_submitted is True
        assert session.state == QuizSessionState.SUBMITTED
        _, answers, _ = submit.await_args.args
        assert [a.question_id for a in answers] == [question_id]
        submit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_manual_submit_stops_countdown(self, quiz_id, submit) -> None:
        session = QuizSession(quiz_id, submit, time_limit_seconds=30, tick_seconds=1)
        session.start()
        assert session.remaining_seconds is not None
        assert 0 < session.remaining_seconds <= 30

        await session.submit()
        assert await session.wait() is session.result
        submit.assert_awaited_once()
        assert session.auto_submitted is False

    @pytest.mark.asyncio
    async def test_failed_manual_submit_still_auto_submits(self, quiz_id) -> None:
        submit = AsyncMock(
            side_effect=[
                httpx.ConnectError("offline"),
                _response(quiz_id, passed=True),
            ]
        )
        session = QuizSession(
            quiz_id, submit, time_limit_seconds=0.05, tick_seconds=0.01
        )
        session.start()

        with pytest.raises(httpx.ConnectError):
            await session.submit()
        assert session.state == QuizSessionState.IN_PROGRESS

        result = await asyncio.wait_for(session.wait(), timeout=1)

        assert result is not None
        assert session.auto_submitted is True
        assert session.state == QuizSessionState.SUBMITTED
        assert submit.await_count == 2

    @pytest.mark.asyncio
    async def test_expiry_waits_for_in_flight_submit(self, quiz_id) -> None:
        release = asyncio.Event()
        response = _response(quiz_id, passed=True)

        async def slow_submit(*_args):
            await release.wait()
            return response

        submit = AsyncMock(side_effect=slow_submit)
        session = QuizSession(
            quiz_id, submit, time_limit_seconds=0.02, tick_seconds=0.01
        )
        session.start()
        manual = asyncio.create_task(session.submit())
        await asyncio.sleep(0.06)
        release.set()

        assert await manual is response
        assert await session.wait() is response
        assert session.auto_submitted is False
        submit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_untimed_quiz_has_no_countdown(self, quiz_id, submit) -> None:
        session = QuizSession(quiz_id, submit)
        session.start()
        assert session.remaining_seconds is None
        assert await session.wait() is None

    def test_from_quiz_converts_minutes(self, quiz_id, submit) -> None:
        quiz = QuizResponse(
            id=quiz_id,
            title="Timed",
            passing_score=70,
            time_limit_minutes=2,
            total_points=0,
        )
        session = QuizSession.from_quiz(quiz, submit)
        assert session.time_limit_seconds == 120
        assert session.question_ids == frozenset()
