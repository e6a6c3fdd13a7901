"""
Core module - shared types and infrastructure.

This module contains:
- roles: Account roles (Admin, Teacher, Student, Parent)
- errors: Auth exception taxonomy
- utils: Shared utility functions
"""

from schoolauth.core.errors import (
    AuthError,
    ConfigurationError,
    InvalidCredentials,
    UnverifiedAccount,
    AccountExists,
    InvalidToken,
    Unauthorized,
    Forbidden,
)
from schoolauth.core.roles import Role, STAFF_ROLES, ALL_ROLES
from schoolauth.core.utils import generate_id, utc_now

__all__ = [
    # Roles
    "Role",
    "STAFF_ROLES",
    "ALL_ROLES",
    # Errors
    "AuthError",
    "ConfigurationError",
    "InvalidCredentials",
    "UnverifiedAccount",
    "AccountExists",
    "InvalidToken",
    "Unauthorized",
    "Forbidden",
    # Utils
    "generate_id",
    "utc_now",
]
