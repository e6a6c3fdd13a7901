"""
Immutable configuration for the auth core.

Built once at startup and injected into the hasher and the token
services, never read from ambient global state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from schoolauth.core.errors import ConfigurationError

if TYPE_CHECKING:
    from schoolauth.config import Settings


DEFAULT_SESSION_TTL = timedelta(days=7)
DEFAULT_BCRYPT_ROUNDS = 12


@dataclass(frozen=True)
class AuthConfig:
    """Signing key, algorithm, session lifetime and hash cost factor."""

    signing_key: str
    algorithm: str = "HS256"
    session_ttl: timedelta = DEFAULT_SESSION_TTL
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS

    def __post_init__(self):
        if not self.signing_key:
            raise ConfigurationError("JWT signing secret is not configured (set JWT_SECRET_KEY)")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ConfigurationError(f"bcrypt cost factor out of range: {self.bcrypt_rounds}")

    def __repr__(self) -> str:
        return (
            f"AuthConfig(algorithm={self.algorithm!r}, session_ttl={self.session_ttl!r}, "
            f"bcrypt_rounds={self.bcrypt_rounds})"
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthConfig:
        """
        Build from application settings.

        Raises:
            ConfigurationError: signing secret missing or cost factor invalid
        """
        return cls(
            signing_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            session_ttl=timedelta(days=settings.session_ttl_days),
            bcrypt_rounds=settings.bcrypt_rounds,
        )
