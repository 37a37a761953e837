"""Course enrollment module.

Answers "is user X enrolled in course Y" for the progress engine.
"""

from .models import ENROLLMENTS_TABLES_CQL, Enrollment, EnrollmentStatus


__all__ = [
    "ENROLLMENTS_TABLES_CQL",
    "Enrollment",
    "EnrollmentStatus",
]
