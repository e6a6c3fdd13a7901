"""
Authentication and authorization.

Design principles:
1. Verification returns values (False / None / Deny), never raises
2. Authentication before authorization, always
3. Configuration is injected, never ambient
4. One dependency per route for all auth needs
"""

from schoolauth.auth.config import AuthConfig
from schoolauth.auth.passwords import PasswordHasher
from schoolauth.auth.tokens import (
    Claims,
    SessionTokens,
    OneTimeTokens,
    generate_token,
    hash_token,
)
from schoolauth.auth.guard import (
    AuthorizationGuard,
    Policy,
    Permit,
    Deny,
    DenyReason,
    bearer_from_header,
)
from schoolauth.auth.policies import (
    require,
    require_auth,
    require_role,
    require_owner,
    enforce,
)
from schoolauth.auth.routes import router as auth_router

__all__ = [
    # Config
    "AuthConfig",
    # Passwords
    "PasswordHasher",
    # Tokens
    "Claims",
    "SessionTokens",
    "OneTimeTokens",
    "generate_token",
    "hash_token",
    # Guard
    "AuthorizationGuard",
    "Policy",
    "Permit",
    "Deny",
    "DenyReason",
    "bearer_from_header",
    # FastAPI
    "require",
    "require_auth",
    "require_role",
    "require_owner",
    "enforce",
    "auth_router",
]
