"""Client-side quiz session.

State machine for one learner viewing one quiz:

    NOT_STARTED -> IN_PROGRESS -> SUBMITTED (passed | failed)

Starting a timed quiz launches a cooperative countdown on the running event
loop. When it expires, the answers held at that instant are submitted
automatically. The countdown exposes no cancel operation; only a submission
ends it.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from uuid import UUID

import structlog

from .exceptions import QuizSessionStateError
from .schemas import QuizResponse, SubmitQuizResponse
from .scoring import AnswerInput


logger = structlog.get_logger(__name__)

SubmitCallable = Callable[[UUID, list[AnswerInput], int], Awaitable[SubmitQuizResponse]]


class QuizSessionState(str, Enum):
    """Quiz session state."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class QuizSession:
    """One quiz attempt as seen by the learner's client."""

    def __init__(
        self,
        quiz_id: UUID,
        submit: SubmitCallable,
        time_limit_seconds: float | None = None,
        question_ids: frozenset[UUID] | None = None,
        clock: Callable[[], float] = time.monotonic,
        tick_seconds: float = 1.0,
    ):
        self.quiz_id = quiz_id
        self.time_limit_seconds = time_limit_seconds
        self.question_ids = question_ids
        self.state = QuizSessionState.NOT_STARTED
        self.result: SubmitQuizResponse | None = None
        self.auto_submitted = False

        self._submit = submit
        self._clock = clock
        self._tick_seconds = tick_seconds
        self._answers: dict[UUID, AnswerInput] = {}
        self._started_at: float | None = None
        self._submitting = False
        self._countdown: asyncio.Task[None] | None = None

    @classmethod
    def from_quiz(
        cls, quiz: QuizResponse, submit: SubmitCallable, **kwargs
    ) -> "QuizSession":
        """Build a session for a delivered quiz (time limit is in minutes)."""
        time_limit = quiz.time_limit_minutes * 60 if quiz.time_limit_minutes else None
        return cls(
            quiz_id=quiz.id,
            submit=submit,
            time_limit_seconds=time_limit,
            question_ids=frozenset(q.id for q in quiz.questions),
            **kwargs,
        )

    # ==========================================================================
    # Transitions
    # ==========================================================================

    def start(self) -> None:
        """NOT_STARTED -> IN_PROGRESS, starting the countdown for timed quizzes."""
        if self.state != QuizSessionState.NOT_STARTED:
            raise QuizSessionStateError("Quiz session already started")

        self.state = QuizSessionState.IN_PROGRESS
        self._started_at = self._clock()
        if self.time_limit_seconds:
            self._countdown = asyncio.get_running_loop().create_task(
                self._run_countdown()
            )
        logger.debug(
            "quiz_session_started",
            quiz_id=str(self.quiz_id),
            time_limit_seconds=self.time_limit_seconds,
        )

    def answer(
        self,
        question_id: UUID,
        selected_option_ids: tuple[UUID, ...] = (),
        text_answer: str | None = None,
    ) -> None:
        """Record or replace the answer to one question."""
        self._require_in_progress()
        if self.question_ids is not None and question_id not in self.question_ids:
            raise QuizSessionStateError(f"Question {question_id} is not in this quiz")
        self._answers[question_id] = AnswerInput(
            question_id=question_id,
            selected_option_ids=tuple(selected_option_ids),
            text_answer=text_answer,
        )

    async def submit(self) -> SubmitQuizResponse:
        """Submit the current answers (IN_PROGRESS -> SUBMITTED).

        The countdown keeps running until the submission is recorded, so a
        failed manual submit still ends in an automatic one at expiry.
        """
        self._require_in_progress()
        result = await self._do_submit(auto=False)
        if self._countdown is not None and not self._countdown.done():
            self._countdown.cancel()
        return result

    async def wait(self) -> SubmitQuizResponse | None:
        """Wait for the countdown to finish (and auto-submit) if one is running."""
        if self._countdown is not None:
            try:
                await self._countdown
            except asyncio.CancelledError:
                # Cancelled by a manual submit, which already produced the result
                if self.state != QuizSessionState.SUBMITTED:
                    raise
        return self.result

    # ==========================================================================
    # State
    # ==========================================================================

    @property
    def answers(self) -> list[AnswerInput]:
        return list(self._answers.values())

    @property
    def elapsed_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    @property
    def remaining_seconds(self) -> float | None:
        """Seconds left on the countdown, None for untimed quizzes."""
        if not self.time_limit_seconds:
            return None
        return max(0.0, self.time_limit_seconds - self.elapsed_seconds)

    @property
    def outcome(self) -> str | None:
        """``passed`` or ``failed`` once submitted."""
        if self.result is None:
            return None
        return "passed" if self.result.passed else "failed"

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _require_in_progress(self) -> None:
        if self.state != QuizSessionState.IN_PROGRESS:
            raise QuizSessionStateError(
                f"Quiz session is {self.state.value}, expected in_progress"
            )
        if self._submitting:
            raise QuizSessionStateError("Quiz submission already in flight")

    async def _run_countdown(self) -> None:
        while True:
            remaining = self.remaining_seconds
            if remaining is None or remaining <= 0:
                break
            await asyncio.sleep(min(self._tick_seconds, remaining))

        logger.info("quiz_time_expired", quiz_id=str(self.quiz_id))
        while self.state == QuizSessionState.IN_PROGRESS:
            if self._submitting:
                # A manual submit is in flight and may still fail
                await asyncio.sleep(self._tick_seconds)
                continue
            await self._do_submit(auto=True)

    async def _do_submit(self, auto: bool) -> SubmitQuizResponse:
        self._submitting = True
        try:
            result = await self._submit(
                self.quiz_id, self.answers, int(self.elapsed_seconds)
            )
        finally:
            self._submitting = False

        self.result = result
        self.auto_submitted = auto
        self.state = QuizSessionState.SUBMITTED
        logger.info(
            "quiz_session_submitted",
            quiz_id=str(self.quiz_id),
            auto=auto,
            passed=result.passed,
        )
        return result
