# =============================================================================
# Session and One-Time Tokens
# =============================================================================
#
# Two independent mechanisms:
#   - Session tokens: signed JWTs (HS256 by default) carrying subject id,
#     role and timestamps. Handed to clients as bearer credentials.
#   - One-time tokens: 256-bit random strings with no embedded claims,
#     delivered out-of-band (verification / reset links). The credential
#     store binds their SHA-256 digest to one account and an expiry.
#
# Verification never raises: anything wrong yields None, whatever the
# cause, so callers cannot be used as an oracle.
#
# =============================================================================

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from pydantic import BaseModel, ConfigDict

from schoolauth.auth.config import AuthConfig
from schoolauth.core.roles import Role
from schoolauth.core.utils import Clock, as_utc, generate_id, utc_now
from schoolauth.storage.base import Credential, CredentialStore, TokenPurpose, TokenRecord

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "role", "iat", "exp"]

# 32 bytes = 256 bits of entropy
ONE_TIME_TOKEN_BYTES = 32


# =============================================================================
# Models
# =============================================================================


class Claims(BaseModel):
    """Identity decoded from a verified session token."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    role: Role
    issued_at: datetime
    expires_at: datetime
    token_id: str = ""
    name: str | None = None
    email: str | None = None


# =============================================================================
# Session Tokens
# =============================================================================


class SessionTokens:
    """
    Issue and verify signed session tokens.

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(self, config: AuthConfig, clock: Clock = utc_now):
        self._config = config
        self._clock = clock

    @property
    def default_ttl(self) -> timedelta:
        return self._config.session_ttl

    def issue(
        self,
        subject_id: str,
        role: Role,
        ttl: timedelta | None = None,
        **extra_claims: Any,
    ) -> str:
        """
        Create a signed session token.

        Args:
            subject_id: Credential ID, stored as `sub`
            role: Account role, stored as `role`
            ttl: Lifetime; defaults to the configured session TTL (7 days)
            **extra_claims: Display claims such as name and email
        """
        now = self._clock()
        lifetime = self.default_ttl if ttl is None else ttl
        issued_at = int(now.timestamp())

        payload = {
            **{k: v for k, v in extra_claims.items() if v is not None},
            "sub": subject_id,
            "role": Role(role).value,
            "iat": issued_at,
            "exp": issued_at + int(lifetime.total_seconds()),
            "jti": generate_id("tok"),
        }

        return jwt.encode(payload, self._config.signing_key, algorithm=self._config.algorithm)

    def verify(self, token: str | None) -> Claims | None:
        """
        Verify signature, structure and expiry.

        Returns the claims if valid, None otherwise.
        """
        if not token or not isinstance(token, str):
            return None

        try:
            payload = jwt.decode(
                token,
                self._config.signing_key,
                algorithms=[self._config.algorithm],
                options={
                    "require": REQUIRED_CLAIMS,
                    # Expiry is checked below against the injected clock
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.InvalidTokenError as e:
            logger.debug(f"Session token rejected: {type(e).__name__}")
            return None

        try:
            expires_at = int(payload["exp"])
            issued_at = int(payload["iat"])
        except (TypeError, ValueError):
            logger.debug("Session token rejected: non-numeric timestamps")
            return None

        if self._clock().timestamp() >= expires_at:
            logger.debug("Session token rejected: expired")
            return None

        role = Role.parse(payload["role"])
        subject_id = payload["sub"]
        if role is None or not isinstance(subject_id, str) or not subject_id:
            logger.debug("Session token rejected: bad subject or role")
            return None

        try:
            return Claims(
                subject_id=subject_id,
                role=role,
                issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
                expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
                token_id=str(payload.get("jti", "")),
                name=payload.get("name"),
                email=payload.get("email"),
            )
        except (ValueError, OverflowError, OSError) as e:
            # ValidationError is a ValueError; bad display claims or out-of-range timestamps
            logger.debug(f"Session token rejected: {type(e).__name__}")
            return None


# =============================================================================
# One-Time Tokens
# =============================================================================


def generate_token() -> str:
    """Random token for verification / reset links (256 bits, hex)."""
    return secrets.token_hex(ONE_TIME_TOKEN_BYTES)


def hash_token(token: str) -> str:
    # The store keeps only the digest, so a leaked table yields no usable links
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class OneTimeTokens:
    """
    Issue, verify and consume single-use out-of-band tokens.

    `verify` is read-only; `consume` is the separate write step. A flow
    verifies first, decides, then consumes; only the first consume wins.
    """

    def __init__(self, store: CredentialStore, clock: Clock = utc_now):
        self._store = store
        self._clock = clock

    def issue(self, credential_id: str, purpose: TokenPurpose, expires_at: datetime) -> str:
        """
        Generate a token and bind it to a credential until `expires_at`.

        Replaces any pending token with the same purpose.

        Raises:
            LookupError: no such credential
        """
        token = generate_token()
        record = TokenRecord(token_hash=hash_token(token), expires_at=as_utc(expires_at))
        if not self._store.set_token(credential_id, purpose, record):
            raise LookupError(f"Unknown credential: {credential_id}")
        return token

    def issue_for(self, credential_id: str, purpose: TokenPurpose, ttl: timedelta) -> str:
        """Issue a token valid for `ttl` from now."""
        return self.issue(credential_id, purpose, self._clock() + ttl)

    def verify(self, token: str | None, purpose: TokenPurpose) -> Credential | None:
        """
        Look up a token and check it has not expired.

        Not found, expired and already consumed all return None.
        """
        if not token or not isinstance(token, str):
            return None

        credential = self._store.find_by_token(purpose, hash_token(token))
        if credential is None:
            return None

        record = credential.token_for(purpose)
        if record is None or self._clock() >= as_utc(record.expires_at):
            return None

        return credential

    def consume(self, credential_id: str, token: str, purpose: TokenPurpose) -> bool:
        """Invalidate the token. False if someone else consumed it first."""
        return self._store.consume_token(credential_id, purpose, hash_token(token))
