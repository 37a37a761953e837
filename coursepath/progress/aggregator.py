"""Hierarchical completion rules.

Pure functions: given the course tree, the lessons already recorded as
completed and the freshly verified state of one lesson, derive the complete
lesson/unit/course state. The result never depends on the order in which
lessons were completed, so repeated or interleaved calls converge.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from coursepath.courses.models import CourseTree


_PERCENT_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class ProgressSnapshot:
    """Recomputed progress state of a course."""

    completed_lessons: frozenset[UUID]
    completed_units: frozenset[UUID]
    progress_percent: Decimal
    completed: bool
    current_lesson_id: UUID | None
    current_unit_id: UUID | None


def is_lesson_complete(
    video_completed: bool,
    has_quiz: bool,
    latest_attempt_passed: bool | None,
) -> bool:
    """Video completed, and the latest quiz attempt passed when there is a quiz."""
    if not video_completed:
        return False
    if not has_quiz:
        return True
    return bool(latest_attempt_passed)


def compute_progress_percent(completed_count: int, total_lessons: int) -> Decimal:
    if total_lessons <= 0:
        return Decimal(0)
    percent = Decimal(completed_count) * 100 / Decimal(total_lessons)
    return percent.quantize(_PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def recompute_progress(
    tree: CourseTree,
    previous_completed_lessons: frozenset[UUID],
    lesson_id: UUID,
    unit_id: UUID,
    lesson_completed: bool,
) -> ProgressSnapshot:
    """Apply one verified lesson state and rebuild the whole hierarchy.

    Lessons no longer part of the course are dropped, so the completed set
    always stays a subset of the course lessons.
    """
    course_lessons = tree.lesson_ids
    completed_lessons = set(previous_completed_lessons & course_lessons)
    if lesson_completed:
        completed_lessons.add(lesson_id)
    else:
        completed_lessons.discard(lesson_id)

    completed_units = frozenset(
        unit.id
        for unit in tree.units
        if unit.lesson_ids <= completed_lessons
    )

    total = tree.total_lessons
    course_completed = total > 0 and len(completed_lessons) == total

    return ProgressSnapshot(
        completed_lessons=frozenset(completed_lessons),
        completed_units=completed_units,
        progress_percent=compute_progress_percent(len(completed_lessons), total),
        completed=course_completed,
        current_lesson_id=None if course_completed else lesson_id,
        current_unit_id=None if course_completed else unit_id,
    )
