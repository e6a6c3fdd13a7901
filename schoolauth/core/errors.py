"""
Auth error taxonomy.

Verification paths (passwords, tokens, guard checks) return values instead
of raising; these exceptions are for the account flows and for startup.
"""


class AuthError(Exception):
    """Base exception for auth errors."""
    pass


class ConfigurationError(AuthError):
    """Fatal configuration problem, raised at startup only."""
    pass


class InvalidCredentials(AuthError):
    """Identifier/password combination is wrong."""
    pass


class UnverifiedAccount(AuthError):
    """Password is correct but the e-mail address is not verified yet."""
    pass


class AccountExists(AuthError):
    """An account with this identifier already exists."""
    pass


class InvalidToken(AuthError):
    """
    Token is missing, malformed, expired, forged or already consumed.

    One kind for all cases; callers cannot tell which occurred.
    """
    pass


class Unauthorized(AuthError):
    """No valid identity."""
    pass


class Forbidden(AuthError):
    """Valid identity, insufficient role or ownership."""
    pass
