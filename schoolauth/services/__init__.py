"""
Services built on the auth core.
"""

from schoolauth.services.accounts import AccountService, LoginResult

__all__ = [
    "AccountService",
    "LoginResult",
]
