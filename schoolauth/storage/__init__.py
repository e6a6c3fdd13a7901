"""
Credential storage.

The auth core depends only on `CredentialStore`; `InMemoryCredentialStore`
backs development and tests.
"""

from schoolauth.storage.base import (
    Credential,
    CredentialStore,
    TokenPurpose,
    TokenRecord,
)
from schoolauth.storage.memory import InMemoryCredentialStore

__all__ = [
    "Credential",
    "CredentialStore",
    "TokenPurpose",
    "TokenRecord",
    "InMemoryCredentialStore",
]
