"""
In-memory credential storage for development and tests.

Works without any external services. One lock serialises every
mutation, which makes token consumption atomic across threads.
"""

from __future__ import annotations

import threading

from schoolauth.core.errors import AccountExists
from schoolauth.core.roles import Role
from schoolauth.core.utils import utc_now
from schoolauth.storage.base import TOKEN_FIELDS, Credential, CredentialStore, TokenPurpose, TokenRecord


class InMemoryCredentialStore(CredentialStore):
    """Dict-backed credential store."""

    def __init__(self):
        self._credentials: dict[str, Credential] = {}
        self._by_identifier: dict[tuple[Role, str], str] = {}  # (role, identifier) -> id
        self._lock = threading.Lock()

    @staticmethod
    def _key(identifier: str, role: Role) -> tuple[Role, str]:
        return role, identifier.strip().lower()

    def add(self, credential: Credential) -> Credential:
        key = self._key(credential.identifier, credential.role)
        with self._lock:
            if key in self._by_identifier:
                raise AccountExists(f"{credential.role.value} account already exists")
            stored = credential.model_copy(deep=True)
            self._credentials[stored.id] = stored
            self._by_identifier[key] = stored.id
        return stored.model_copy(deep=True)

    def get(self, credential_id: str) -> Credential | None:
        credential = self._credentials.get(credential_id)
        return credential.model_copy(deep=True) if credential else None

    def find_by_identifier(self, identifier: str, role: Role) -> Credential | None:
        credential_id = self._by_identifier.get(self._key(identifier, role))
        return self.get(credential_id) if credential_id else None

    def find_by_token(self, purpose: TokenPurpose, token_hash: str) -> Credential | None:
        for credential in list(self._credentials.values()):
            record = credential.token_for(purpose)
            if record is not None and record.token_hash == token_hash:
                return credential.model_copy(deep=True)
        return None

    def set_token(self, credential_id: str, purpose: TokenPurpose, record: TokenRecord) -> bool:
        with self._lock:
            credential = self._credentials.get(credential_id)
            if credential is None:
                return False
            self._assign_token(credential, purpose, record)
            return True

    def consume_token(self, credential_id: str, purpose: TokenPurpose, token_hash: str) -> bool:
        with self._lock:
            credential = self._credentials.get(credential_id)
            if credential is None:
                return False
            record = credential.token_for(purpose)
            if record is None or record.token_hash != token_hash:
                return False
            self._assign_token(credential, purpose, None)
            return True

    def update_password(self, credential_id: str, password_hash: str) -> bool:
        with self._lock:
            credential = self._credentials.get(credential_id)
            if credential is None:
                return False
            credential.password_hash = password_hash
            credential.updated_at = utc_now()
            return True

    def mark_verified(self, credential_id: str) -> bool:
        with self._lock:
            credential = self._credentials.get(credential_id)
            if credential is None:
                return False
            credential.verified = True
            credential.updated_at = utc_now()
            return True

    def activate(self, credential_id: str, name: str, password_hash: str) -> bool:
        with self._lock:
            credential = self._credentials.get(credential_id)
            if credential is None:
                return False
            credential.name = name
            credential.password_hash = password_hash
            credential.verified = True
            credential.updated_at = utc_now()
            return True

    @staticmethod
    def _assign_token(credential: Credential, purpose: TokenPurpose, record: TokenRecord | None) -> None:
        setattr(credential, TOKEN_FIELDS[purpose], record)
        credential.updated_at = utc_now()
