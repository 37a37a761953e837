"""HTTP client for the progress API.

Used by the tracker session and the quiz session to reach the server with
the learner's bearer token. Responses are parsed with the server schemas.
"""

from typing import Any
from uuid import UUID

import httpx

from coursepath.certificates.schemas import CertificateResponse
from coursepath.progress.schemas import UpdateLessonProgressResponse
from coursepath.quizzes.schemas import QuizResponse, SubmitQuizResponse
from coursepath.quizzes.scoring import AnswerInput
from coursepath.video.schemas import (
    UpdateVideoCompletionRequest,
    VideoCompletionResponse,
)


class ProgressApiError(RuntimeError):
    """Non-success response from the progress API."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    try:
        body = response.json()
    except ValueError:
        body = None
    message = body.get("message") if isinstance(body, dict) else None
    raise ProgressApiError(response.status_code, message or response.reason_phrase)


class ProgressApiClient:
    """Async client for video completion, quiz, progress and certificate routes."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout
        )
        self._headers = {"Authorization": f"Bearer {token}"}

    async def __aenter__(self) -> "ProgressApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._client.request(
            method, path, headers=self._headers, **kwargs
        )
        _raise_for_status(response)
        return response.json()

    # ==========================================================================
    # Video completions
    # ==========================================================================

    async def get_video_completion(
        self, lesson_id: UUID
    ) -> VideoCompletionResponse | None:
        data = await self._request("GET", f"/v1/video-completions/{lesson_id}")
        return VideoCompletionResponse.model_validate(data) if data else None

    async def update_video_completion(
        self, lesson_id: UUID, report: UpdateVideoCompletionRequest
    ) -> VideoCompletionResponse:
        data = await self._request(
            "PUT",
            f"/v1/video-completions/{lesson_id}",
            json=report.model_dump(mode="json"),
        )
        return VideoCompletionResponse.model_validate(data)

    # ==========================================================================
    # Quizzes
    # ==========================================================================

    async def get_quiz_for_lesson(self, lesson_id: UUID) -> QuizResponse:
        data = await self._request("GET", f"/v1/quizzes/by-lesson/{lesson_id}")
        return QuizResponse.model_validate(data)

    async def submit_quiz(
        self,
        quiz_id: UUID,
        answers: list[AnswerInput],
        time_taken_seconds: int,
    ) -> SubmitQuizResponse:
        """Submit answers. Signature matches what a QuizSession expects."""
        payload = {
            "answers": [
                {
                    "question_id": str(answer.question_id),
                    "selected_option_ids": [
                        str(option_id) for option_id in answer.selected_option_ids
                    ],
                    "text_answer": answer.text_answer,
                }
                for answer in answers
            ],
            "time_taken_seconds": time_taken_seconds,
        }
        data = await self._request(
            "POST", f"/v1/quizzes/{quiz_id}/submissions", json=payload
        )
        return SubmitQuizResponse.model_validate(data)

    # ==========================================================================
    # Course progress and certificates
    # ==========================================================================

    async def update_course_progress(
        self, course_id: UUID, lesson_id: UUID, completed: bool = True
    ) -> UpdateLessonProgressResponse:
        data = await self._request(
            "POST",
            f"/v1/progress/courses/{course_id}/lessons/{lesson_id}",
            json={"completed": completed},
        )
        return UpdateLessonProgressResponse.model_validate(data)

    async def generate_certificate(self, course_id: UUID) -> CertificateResponse:
        data = await self._request(
            "POST", "/v1/certificates", json={"course_id": str(course_id)}
        )
        return CertificateResponse.model_validate(data)
