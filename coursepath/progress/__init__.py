"""Course progress module.

Provides:
- Pure lesson, unit and course completion rules
- Completion aggregator persisting CourseProgress with compare-and-set
"""

from .aggregator import (
    ProgressSnapshot,
    compute_progress_percent,
    is_lesson_complete,
    recompute_progress,
)
from .models import PROGRESS_TABLES_CQL, CourseProgress


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CourseProgress",
    "ProgressSnapshot",
    "compute_progress_percent",
    "is_lesson_complete",
    "recompute_progress",
]
