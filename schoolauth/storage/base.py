"""
Credential storage abstraction.

The auth core reads and writes account records only through this
interface, so the backing store (in-memory for development, a relational
database in production) can be swapped without touching the core.

One-time tokens are stored as SHA-256 digests, never in the clear.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from schoolauth.core.roles import Role
from schoolauth.core.utils import generate_id, utc_now


# =============================================================================
# Records
# =============================================================================


class TokenPurpose(str, Enum):
    """What an out-of-band one-time token is for."""

    VERIFY_EMAIL = "verify_email"
    PASSWORD_RESET = "password_reset"
    ADMIN_INVITE = "admin_invite"


# Credential field holding the pending token for each purpose
TOKEN_FIELDS = {
    TokenPurpose.VERIFY_EMAIL: "verification_token",
    TokenPurpose.PASSWORD_RESET: "reset_token",
    TokenPurpose.ADMIN_INVITE: "invite_token",
}


class TokenRecord(BaseModel):
    """A pending one-time token bound to a credential."""

    token_hash: str
    expires_at: datetime


class Credential(BaseModel):
    """
    An account as seen by the auth core.

    `identifier` is the login name: an e-mail address, or the roll
    number for students. An invited administrator exists as a pending
    credential (no password yet) until the invitation is accepted.
    """

    id: str = Field(default_factory=lambda: generate_id("cred"))
    identifier: str
    name: str = ""
    role: Role
    password_hash: str
    verified: bool = False

    verification_token: TokenRecord | None = None
    reset_token: TokenRecord | None = None
    invite_token: TokenRecord | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_pending(self) -> bool:
        return not self.password_hash

    def token_for(self, purpose: TokenPurpose) -> TokenRecord | None:
        return getattr(self, TOKEN_FIELDS[purpose])


# =============================================================================
# Storage Interface
# =============================================================================


class CredentialStore(ABC):
    """
    Persistence for credentials and their one-time tokens.

    Implementations must make `consume_token` atomic: of two concurrent
    consumers of the same token, exactly one gets True.
    """

    @abstractmethod
    def add(self, credential: Credential) -> Credential:
        """
        Store a new credential.

        Raises:
            AccountExists: identifier already taken for that role
        """
        pass

    @abstractmethod
    def get(self, credential_id: str) -> Credential | None:
        """Get a credential by ID."""
        pass

    @abstractmethod
    def find_by_identifier(self, identifier: str, role: Role) -> Credential | None:
        """Find a credential by login identifier within a role."""
        pass

    @abstractmethod
    def find_by_token(self, purpose: TokenPurpose, token_hash: str) -> Credential | None:
        """Find the credential holding this token digest for this purpose."""
        pass

    @abstractmethod
    def set_token(self, credential_id: str, purpose: TokenPurpose, record: TokenRecord) -> bool:
        """Bind a token to a credential, replacing any previous one."""
        pass

    @abstractmethod
    def consume_token(self, credential_id: str, purpose: TokenPurpose, token_hash: str) -> bool:
        """
        Atomically clear the token if it is still the one bound.

        Returns False if it was already consumed or replaced.
        """
        pass

    @abstractmethod
    def update_password(self, credential_id: str, password_hash: str) -> bool:
        """Replace the stored password hash."""
        pass

    @abstractmethod
    def mark_verified(self, credential_id: str) -> bool:
        """Flag the e-mail address as verified."""
        pass

    @abstractmethod
    def activate(self, credential_id: str, name: str, password_hash: str) -> bool:
        """Set name and password of a pending credential and mark it verified."""
        pass
