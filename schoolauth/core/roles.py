"""
Roles.

Every account has exactly one platform-wide role. The enum values keep
the casing the web client sends and the casing stored in session tokens.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Platform-wide account role."""

    ADMIN = "Admin"        # School administrator
    TEACHER = "Teacher"    # Class / subject teacher
    STUDENT = "Student"    # Logs in with roll number
    PARENT = "Parent"      # Guardian of one or more students

    @classmethod
    def parse(cls, value: Role | str | None) -> Role | None:
        """
        Resolve a role from user input, ignoring case.

        Returns None for unknown values.
        """
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().capitalize()
        try:
            return cls(normalized)
        except ValueError:
            return None


STAFF_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.TEACHER})
ALL_ROLES: frozenset[Role] = frozenset(Role)
