"""
Policies - the FastAPI face of the authorization guard.

Route handlers declare what they need and receive verified claims:

    @router.get("/parents/{parent_id}/children")
    async def children(
        parent_id: str,
        claims: Claims = Depends(require_owner("parent_id", Role.PARENT)),
    ):
        ...

Deny(UNAUTHORIZED) becomes 401 with `WWW-Authenticate: Bearer`,
Deny(FORBIDDEN) becomes 403. When the owner is only known after loading
a record, check it in the handler with `enforce(guard.authorize_ownership(...))`.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from schoolauth.auth.guard import AuthorizationGuard, Deny, DenyReason, Policy, Verdict
from schoolauth.auth.tokens import Claims
from schoolauth.core.roles import Role


# Optional bearer (doesn't fail if no token; the guard decides)
optional_bearer = HTTPBearer(auto_error=False)


def get_guard(request: Request) -> AuthorizationGuard:
    """The guard built at startup (see api/app.py)."""
    return request.app.state.guard


def enforce(verdict: Verdict) -> Claims:
    """Return the claims of a Permit, raise the matching HTTP error for a Deny."""
    if not isinstance(verdict, Deny):
        return verdict.claims

    if verdict.reason == DenyReason.UNAUTHORIZED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=verdict.detail or "Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=verdict.detail or "Forbidden")


# =============================================================================
# Main Interface
# =============================================================================


def require(*roles: Role, owner_param: str | None = None) -> Callable:
    """
    Build a dependency resolving to the caller's claims.

    Args:
        *roles: Allowed roles; none means any authenticated user
        owner_param: Path parameter holding the resource owner's ID;
            the caller must be that owner
    """

    async def dependency(
        request: Request,
        credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
        guard: AuthorizationGuard = Depends(get_guard),
    ) -> Claims:
        token = credentials.credentials if credentials else None

        if owner_param is not None:
            policy = Policy.owned_by(request.path_params.get(owner_param), *roles)
        elif roles:
            policy = Policy.role_in(*roles)
        else:
            policy = Policy.any_user()

        return enforce(guard.check(token, policy))

    return dependency


def require_auth() -> Callable:
    """Any authenticated user."""
    return require()


def require_role(*roles: Role) -> Callable:
    """Caller's role must be one of `roles`."""
    return require(*roles)


def require_owner(path_param: str = "id", *roles: Role) -> Callable:
    """Caller must be the owner named by a path parameter (and hold one of `roles`, if given)."""
    return require(*roles, owner_param=path_param)
