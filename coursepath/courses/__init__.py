"""Course catalog module.

Provides the immutable course -> unit -> lesson tree and the quiz owned
by each lesson.
"""

from .models import COURSES_TABLES_CQL, Course, CourseTree, Lesson, Unit


__all__ = [
    "COURSES_TABLES_CQL",
    "Course",
    "CourseTree",
    "Lesson",
    "Unit",
]
