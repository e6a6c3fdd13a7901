# =============================================================================
# Account Flows
# =============================================================================
#
# Registration, administrator invitations, e-mail verification, login,
# password change and reset, built on the hasher, the token services and
# the credential store.
#
# Delivery of one-time tokens (e-mail) is the caller's job: the methods
# that create a token return it.
#
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from schoolauth.auth.passwords import PasswordHasher
from schoolauth.auth.tokens import Claims, OneTimeTokens, SessionTokens
from schoolauth.core.errors import (
    AccountExists,
    InvalidCredentials,
    InvalidToken,
    Unauthorized,
    UnverifiedAccount,
)
from schoolauth.core.roles import Role
from schoolauth.storage.base import Credential, CredentialStore, TokenPurpose

logger = logging.getLogger(__name__)

DEFAULT_VERIFICATION_TTL = timedelta(hours=24)
DEFAULT_RESET_TTL = timedelta(hours=24)
DEFAULT_INVITE_TTL = timedelta(hours=24)


@dataclass(frozen=True)
class LoginResult:
    token: str
    claims: Claims
    credential: Credential


class AccountService:
    """
    Account lifecycle on top of the auth core.

    Usage:
        accounts = AccountService(store, hasher, sessions, one_time)
        credential, token = accounts.register("a@school.org", "pw", "Ada", Role.TEACHER)
        accounts.verify_email(token)
        result = accounts.login("a@school.org", "pw", Role.TEACHER)
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        sessions: SessionTokens,
        one_time: OneTimeTokens,
        verification_ttl: timedelta = DEFAULT_VERIFICATION_TTL,
        reset_ttl: timedelta = DEFAULT_RESET_TTL,
        invite_ttl: timedelta = DEFAULT_INVITE_TTL,
    ):
        self.store = store
        self.hasher = hasher
        self.sessions = sessions
        self.one_time = one_time
        self.verification_ttl = verification_ttl
        self.reset_ttl = reset_ttl
        self.invite_ttl = invite_ttl

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(
        self,
        identifier: str,
        password: str,
        name: str,
        role: Role,
        verified: bool = False,
    ) -> tuple[Credential, str | None]:
        """
        Create an account.

        Returns the credential and, unless created pre-verified, the
        e-mail verification token to deliver.

        Raises:
            AccountExists: identifier already registered for this role
            ValueError: password too long for bcrypt
        """
        credential = self.store.add(Credential(
            identifier=identifier.strip(),
            name=name,
            role=role,
            password_hash=self.hasher.hash(password),
            verified=verified,
        ))
        logger.info(f"Registered {role.value} account {credential.id}")

        if verified:
            return credential, None

        token = self.one_time.issue_for(credential.id, TokenPurpose.VERIFY_EMAIL, self.verification_ttl)
        return credential, token

    def resend_verification(self, identifier: str, role: Role) -> tuple[Credential, str] | None:
        """New verification token for an unverified account, None otherwise."""
        credential = self.store.find_by_identifier(identifier, role)
        if credential is None or credential.verified or credential.is_pending:
            return None
        token = self.one_time.issue_for(credential.id, TokenPurpose.VERIFY_EMAIL, self.verification_ttl)
        return credential, token

    def verify_email(self, token: str) -> Credential:
        """
        Mark the account behind a verification token as verified.

        Raises:
            InvalidToken: unknown, expired or already used
        """
        credential = self.one_time.verify(token, TokenPurpose.VERIFY_EMAIL)
        if credential is None:
            raise InvalidToken("Invalid or expired token")

        if not self.one_time.consume(credential.id, token, TokenPurpose.VERIFY_EMAIL):
            raise InvalidToken("Invalid or expired token")

        self.store.mark_verified(credential.id)
        logger.info(f"Verified e-mail for {credential.id}")
        return self.store.get(credential.id) or credential

    # -------------------------------------------------------------------------
    # Administrator Invitations
    # -------------------------------------------------------------------------

    def invite_admin(self, email: str) -> tuple[Credential, str]:
        """
        Issue a registration link for a new school administrator.

        Creates a pending credential (no password) on first invitation;
        inviting the same address again replaces the link.

        Raises:
            AccountExists: an active administrator already uses this address
        """
        credential = self.store.find_by_identifier(email, Role.ADMIN)
        if credential is not None and not credential.is_pending:
            raise AccountExists("An admin with this email already exists")

        if credential is None:
            credential = self.store.add(Credential(identifier=email.strip(), role=Role.ADMIN, password_hash=""))

        token = self.one_time.issue_for(credential.id, TokenPurpose.ADMIN_INVITE, self.invite_ttl)
        logger.info(f"Admin invitation issued for {credential.id}")
        return credential, token

    def check_invitation(self, token: str) -> Credential:
        """
        The pending credential behind an invitation, without using it up.

        Raises:
            InvalidToken: unknown, expired or already accepted
        """
        credential = self.one_time.verify(token, TokenPurpose.ADMIN_INVITE)
        if credential is None or not credential.is_pending:
            raise InvalidToken("Invalid or expired token")
        return credential

    def accept_invitation(self, token: str, name: str, password: str) -> Credential:
        """
        Complete an administrator registration.

        The account is verified on completion: the link proved the address.

        Raises:
            InvalidToken: unknown, expired or already accepted
            ValueError: password too long for bcrypt
        """
        credential = self.check_invitation(token)

        password_hash = self.hasher.hash(password)
        if not self.one_time.consume(credential.id, token, TokenPurpose.ADMIN_INVITE):
            raise InvalidToken("Invalid or expired token")

        self.store.activate(credential.id, name, password_hash)
        logger.info(f"Admin registration completed for {credential.id}")
        return self.store.get(credential.id) or credential

    # -------------------------------------------------------------------------
    # Login
    # -------------------------------------------------------------------------

    def authenticate(self, identifier: str, password: str, role: Role) -> Credential:
        """
        Check a password.

        Raises:
            InvalidCredentials: unknown identifier or wrong password
            UnverifiedAccount: password correct, e-mail not verified
        """
        credential = self.store.find_by_identifier(identifier, role)
        if credential is None or credential.is_pending:
            self.hasher.verify_dummy(password)
            logger.info(f"Failed {role.value} login")
            raise InvalidCredentials("Invalid credentials")

        if not self.hasher.verify(password, credential.password_hash):
            logger.info(f"Failed {role.value} login")
            raise InvalidCredentials("Invalid credentials")

        if not credential.verified:
            logger.info(f"Login refused for unverified account {credential.id}")
            raise UnverifiedAccount("Please verify your email before logging in")

        if self.hasher.needs_rehash(credential.password_hash):
            self.store.update_password(credential.id, self.hasher.hash(password))
            logger.info(f"Upgraded password hash for {credential.id}")

        return credential

    def login(self, identifier: str, password: str, role: Role) -> LoginResult:
        """Authenticate and issue a session token."""
        credential = self.authenticate(identifier, password, role)
        # Students sign in with their roll number; it doubles as the email claim
        token = self.sessions.issue(
            credential.id,
            credential.role,
            name=credential.name,
            email=credential.identifier,
        )
        claims = self.sessions.verify(token)
        if claims is None:
            # Only possible with a non-positive session TTL
            raise InvalidToken("Session token could not be issued")
        return LoginResult(token=token, claims=claims, credential=credential)

    def current_user(self, claims: Claims) -> Credential:
        """
        Load the account behind verified claims.

        Raises:
            Unauthorized: account gone or its role changed since issuance
        """
        credential = self.store.get(claims.subject_id)
        if credential is None or credential.role != claims.role:
            raise Unauthorized("User not found")
        return credential

    # -------------------------------------------------------------------------
    # Passwords
    # -------------------------------------------------------------------------

    def change_password(self, claims: Claims, current_password: str, new_password: str) -> Credential:
        """
        Replace the password of the signed-in user.

        Raises:
            Unauthorized: account gone
            InvalidCredentials: current password is wrong
        """
        credential = self.current_user(claims)
        if not self.hasher.verify(current_password, credential.password_hash):
            raise InvalidCredentials("Current password is incorrect")

        self.store.update_password(credential.id, self.hasher.hash(new_password))
        logger.info(f"Password changed for {credential.id}")
        return self.store.get(credential.id) or credential

    def request_password_reset(self, identifier: str, role: Role) -> tuple[Credential, str] | None:
        """
        Issue a reset token.

        Returns None for unknown accounts; callers should answer the same
        way in both cases so account existence is not revealed.
        """
        credential = self.store.find_by_identifier(identifier, role)
        if credential is None or credential.is_pending:
            return None

        token = self.one_time.issue_for(credential.id, TokenPurpose.PASSWORD_RESET, self.reset_ttl)
        logger.info(f"Password reset requested for {credential.id}")
        return credential, token

    def reset_password(self, token: str, new_password: str) -> Credential:
        """
        Set a new password using a reset token.

        The token is consumed before the password changes, so it can be
        used at most once even under concurrent requests.

        Raises:
            InvalidToken: unknown, expired or already used
        """
        credential = self.one_time.verify(token, TokenPurpose.PASSWORD_RESET)
        if credential is None:
            raise InvalidToken("Invalid or expired token")

        new_hash = self.hasher.hash(new_password)
        if not self.one_time.consume(credential.id, token, TokenPurpose.PASSWORD_RESET):
            raise InvalidToken("Invalid or expired token")

        self.store.update_password(credential.id, new_hash)
        logger.info(f"Password reset completed for {credential.id}")
        return self.store.get(credential.id) or credential
