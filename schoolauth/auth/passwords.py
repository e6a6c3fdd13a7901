"""
Password hashing.

bcrypt with a fixed cost factor. Hashing salts internally, so two hashes
of the same password differ yet both verify. Verification never raises.
"""

from __future__ import annotations

import logging
import secrets

import bcrypt

from schoolauth.auth.config import DEFAULT_BCRYPT_ROUNDS, AuthConfig

logger = logging.getLogger(__name__)

# bcrypt ignores everything past 72 bytes
BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """
    One-way hash + verify for credentials.

    Usage:
        hasher = PasswordHasher.from_config(config)
        stored = hasher.hash("s3cret")
        hasher.verify("s3cret", stored)  # True
    """

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS):
        self.rounds = rounds
        # Matches no real password; compared against when the account is unknown
        self.dummy_hash = self.hash(secrets.token_hex(16))

    @classmethod
    def from_config(cls, config: AuthConfig) -> PasswordHasher:
        return cls(rounds=config.bcrypt_rounds)

    def hash(self, password: str) -> str:
        """
        Hash a password with a fresh random salt.

        Raises:
            ValueError: password longer than 72 UTF-8 bytes
        """
        encoded = password.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_BYTES:
            raise ValueError(f"Password too long (bcrypt max {BCRYPT_MAX_BYTES} bytes)")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash. Any failure means False."""
        try:
            encoded = password.encode("utf-8")
            if len(encoded) > BCRYPT_MAX_BYTES:
                return False
            return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except (ValueError, TypeError, AttributeError) as e:
            logger.debug(f"Password verification failed: {type(e).__name__}")
            return False

    def verify_dummy(self, password: str) -> bool:
        """
        Spend the same bcrypt work as `verify` without a stored hash.

        Used when the account does not exist, so the response time does not
        reveal whether it does. Always False.
        """
        self.verify(password, self.dummy_hash)
        return False

    def needs_rehash(self, password_hash: str) -> bool:
        """True if the hash was made with a different cost factor."""
        # Format: $2b$12$<22-char salt><31-char hash>
        parts = password_hash.split("$")
        if len(parts) != 4 or not parts[2].isdigit():
            return True
        return int(parts[2]) != self.rounds
