"""Quiz domain errors."""


class QuizError(Exception):
    """Base quiz error."""

    def __init__(self, message: str, code: str = "quiz_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class QuizNotFoundError(QuizError):
    """Quiz not found."""

    def __init__(self, message: str = "Quiz not found"):
        super().__init__(message, "quiz_not_found")


class EmptyQuizError(QuizError):
    """Quiz has no questions and cannot be submitted."""

    def __init__(self, message: str = "Quiz has no questions"):
        super().__init__(message, "empty_quiz")


class InvalidSubmissionError(QuizError):
    """Answers reference questions or options outside the quiz."""

    def __init__(self, message: str = "Invalid quiz submission"):
        super().__init__(message, "invalid_submission")


class QuizNotEnrolledError(QuizError):
    """User is not enrolled in the quiz's course."""

    def __init__(self, message: str = "User not enrolled in course"):
        super().__init__(message, "not_enrolled")


class VideoNotCompletedError(QuizError):
    """Lesson video must be completed before the quiz."""

    def __init__(self, message: str = "Complete the lesson video before the quiz"):
        super().__init__(message, "video_not_completed")


class AttemptConflictError(QuizError):
    """Retries exhausted while claiming an attempt number."""

    def __init__(self, message: str = "Quiz submission is being recorded concurrently"):
        super().__init__(message, "attempt_conflict")


class QuizSessionStateError(QuizError):
    """Operation not allowed in the current quiz session state."""

    def __init__(self, message: str = "Invalid quiz session state"):
        super().__init__(message, "invalid_session_state")
