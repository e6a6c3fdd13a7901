"""
Authorization guard - the single place route handlers ask "may this
request proceed?".

Design:
- Authentication is always evaluated first. An absent or invalid token
  is Deny(UNAUTHORIZED) and nothing deeper is checked.
- Role and ownership checks only run on verified claims and yield
  Deny(FORBIDDEN).
- Verdicts are values, never exceptions. The HTTP layer maps them
  to 401 / 403 (see policies.py).

Per request:
    Unauthenticated --valid token--> Authenticated --checks--> Permitted | Forbidden
    Unauthenticated --absent/invalid token--> Unauthorized
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from schoolauth.auth.tokens import Claims, SessionTokens
from schoolauth.core.roles import Role


# =============================================================================
# Verdicts
# =============================================================================


class DenyReason(str, Enum):
    UNAUTHORIZED = "unauthorized"  # no valid identity
    FORBIDDEN = "forbidden"        # valid identity, not allowed


@dataclass(frozen=True)
class Permit:
    claims: Claims

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Deny:
    reason: DenyReason
    detail: str = ""

    def __bool__(self) -> bool:
        return False

    @classmethod
    def unauthorized(cls, detail: str = "Unauthorized") -> Deny:
        return cls(DenyReason.UNAUTHORIZED, detail)

    @classmethod
    def forbidden(cls, detail: str = "Forbidden") -> Deny:
        return cls(DenyReason.FORBIDDEN, detail)


Verdict = Permit | Deny


# =============================================================================
# Policy - a declared requirement
# =============================================================================


@dataclass(frozen=True)
class Policy:
    """
    What a handler requires.

        Policy.any_user()                          # any authenticated user
        Policy.role_in(Role.ADMIN, Role.TEACHER)   # role in set
        Policy.owned_by(message.recipient_id)      # must own the resource
        Policy.owned_by(parent_id, Role.PARENT)    # both

    An ownership policy with a missing owner (None) never permits.
    """

    roles: frozenset[Role] | None = None
    owner_id: str | None = None
    check_owner: bool = False

    def __post_init__(self):
        if self.roles is not None and not isinstance(self.roles, frozenset):
            object.__setattr__(self, "roles", frozenset(self.roles))
        if self.owner_id is not None:
            object.__setattr__(self, "check_owner", True)

    @classmethod
    def any_user(cls) -> Policy:
        return cls()

    @classmethod
    def role_in(cls, *roles: Role) -> Policy:
        return cls(roles=frozenset(roles))

    @classmethod
    def owned_by(cls, owner_id: str | None, *roles: Role) -> Policy:
        return cls(roles=frozenset(roles) if roles else None, owner_id=owner_id, check_owner=True)


# =============================================================================
# Guard
# =============================================================================


def bearer_from_header(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


class AuthorizationGuard:
    """
    Resolve identity from a bearer token and enforce role / ownership rules.

    Stateless apart from the (immutable) token verifier; safe to share
    across concurrent requests.
    """

    def __init__(self, tokens: SessionTokens):
        self._tokens = tokens

    def authenticate(self, bearer_token: str | None) -> Claims | Deny:
        """Verified claims, or Deny(UNAUTHORIZED) for absent/invalid tokens."""
        claims = self._tokens.verify(bearer_token)
        if claims is None:
            return Deny.unauthorized()
        return claims

    def authorize_role(self, claims: Claims, allowed_roles: Iterable[Role | str]) -> Verdict:
        allowed = frozenset(r for r in map(Role.parse, allowed_roles) if r is not None)
        if claims.role not in allowed:
            return Deny.forbidden(f"Requires role: {', '.join(sorted(r.value for r in allowed))}")
        return Permit(claims)

    def authorize_ownership(self, claims: Claims, resource_owner_id: str | None) -> Verdict:
        if resource_owner_id is None or claims.subject_id != resource_owner_id:
            return Deny.forbidden("Not the owner of this resource")
        return Permit(claims)

    def authorize(self, claims: Claims, policy: Policy) -> Verdict:
        """Apply a policy to already-authenticated claims."""
        if policy.roles is not None:
            verdict = self.authorize_role(claims, policy.roles)
            if not verdict:
                return verdict

        if policy.check_owner:
            return self.authorize_ownership(claims, policy.owner_id)

        return Permit(claims)

    def check(self, bearer_token: str | None, policy: Policy | None = None) -> Verdict:
        """
        Full evaluation: authenticate, then authorize.

        Returns: Permit(claims) or Deny(reason)
        """
        result = self.authenticate(bearer_token)
        if isinstance(result, Deny):
            return result
        return self.authorize(result, policy or Policy())
