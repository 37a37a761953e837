"""Quiz engine module.

Provides:
- Quiz delivery by lesson
- Validation and grading of submissions
- Append-only attempt history per (user, quiz)
- Client-side quiz session with countdown auto-submit
"""

from .models import QUIZZES_TABLES_CQL, QuestionType, Quiz, QuizAttempt, QuizQuestion


__all__ = [
    "QUIZZES_TABLES_CQL",
    "QuestionType",
    "Quiz",
    "QuizAttempt",
    "QuizQuestion",
]
