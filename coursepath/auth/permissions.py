"""Role hierarchy for course platform users.

- ADMIN (level 2): Full access, including other learners' certificates
- INSTRUCTOR (level 1): Course staff
- LEARNER (level 0): Enrolls in courses and earns certificates
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles with hierarchical levels (higher level = more permissions)."""

    LEARNER = "learner"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.LEARNER: 0,
    UserRole.INSTRUCTOR: 1,
    UserRole.ADMIN: 2,
}


def get_role_level(role: UserRole | str) -> int:
    """Permission level of a role, 0 for unknown roles."""
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.INSTRUCTOR)
        True
        >>> has_permission("learner", "instructor")
        False
    """
    return get_role_level(user_role) >= get_role_level(required_role)
