"""
Tests for the in-memory credential store.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from schoolauth.core.errors import AccountExists
from schoolauth.core.roles import Role
from schoolauth.storage import InMemoryCredentialStore
from schoolauth.storage.base import Credential, TokenPurpose, TokenRecord

EXPIRES = datetime(2030, 1, 1, tzinfo=timezone.utc)


def _credential(identifier="teacher@example.org", role=Role.TEACHER, **kwargs) -> Credential:
    return Credential(identifier=identifier, role=role, password_hash="$2b$04$hash", **kwargs)


class TestAdd:
    def test_add_and_get(self, store):
        stored = store.add(_credential(name="Tess"))

        fetched = store.get(stored.id)
        assert fetched.identifier == "teacher@example.org"
        assert fetched.name == "Tess"
        assert fetched.id.startswith("cred_")

    def test_get_missing(self, store):
        assert store.get("cred_nope") is None

    def test_duplicate_identifier_same_role(self, store):
        store.add(_credential())
        with pytest.raises(AccountExists):
            store.add(_credential(identifier="Teacher@Example.org"))

    def test_same_identifier_other_role(self, store):
        store.add(_credential())
        store.add(_credential(role=Role.PARENT))

        assert store.find_by_identifier("teacher@example.org", Role.PARENT).role == Role.PARENT

    def test_returned_copies_are_detached(self, store):
        stored = store.add(_credential())
        stored.verified = True

        assert store.get(stored.id).verified is False


class TestLookup:
    def test_find_by_identifier_case_insensitive(self, store):
        stored = store.add(_credential())
        assert store.find_by_identifier("  TEACHER@example.org ", Role.TEACHER).id == stored.id

    def test_find_by_identifier_wrong_role(self, store):
        store.add(_credential())
        assert store.find_by_identifier("teacher@example.org", Role.STUDENT) is None

    def test_roll_number_identifier(self, store):
        stored = store.add(_credential(identifier="2024-7B-031", role=Role.STUDENT))
        assert store.find_by_identifier("2024-7b-031", Role.STUDENT).id == stored.id


class TestTokens:
    def test_set_and_find(self, store):
        stored = store.add(_credential())
        assert store.set_token(stored.id, TokenPurpose.PASSWORD_RESET, TokenRecord(token_hash="h1", expires_at=EXPIRES))

        found = store.find_by_token(TokenPurpose.PASSWORD_RESET, "h1")
        assert found.id == stored.id
        assert store.find_by_token(TokenPurpose.VERIFY_EMAIL, "h1") is None

    def test_invite_token_slot(self, store):
        stored = store.add(Credential(identifier="new-head@school.org", role=Role.ADMIN, password_hash=""))
        record = TokenRecord(token_hash="inv", expires_at=EXPIRES)
        store.set_token(stored.id, TokenPurpose.ADMIN_INVITE, record)

        fetched = store.get(stored.id)
        assert fetched.token_for(TokenPurpose.ADMIN_INVITE) == record
        assert fetched.token_for(TokenPurpose.VERIFY_EMAIL) is None
        assert store.find_by_token(TokenPurpose.ADMIN_INVITE, "inv").id == stored.id

    def test_set_unknown_credential(self, store):
        record = TokenRecord(token_hash="h1", expires_at=EXPIRES)
        assert store.set_token("cred_nope", TokenPurpose.PASSWORD_RESET, record) is False

    def test_consume_clears(self, store):
        stored = store.add(_credential())
        store.set_token(stored.id, TokenPurpose.VERIFY_EMAIL, TokenRecord(token_hash="h1", expires_at=EXPIRES))

        assert store.consume_token(stored.id, TokenPurpose.VERIFY_EMAIL, "h1")
        assert store.get(stored.id).verification_token is None
        assert not store.consume_token(stored.id, TokenPurpose.VERIFY_EMAIL, "h1")

    def test_consume_replaced_token(self, store):
        stored = store.add(_credential())
        store.set_token(stored.id, TokenPurpose.PASSWORD_RESET, TokenRecord(token_hash="old", expires_at=EXPIRES))
        store.set_token(stored.id, TokenPurpose.PASSWORD_RESET, TokenRecord(token_hash="new", expires_at=EXPIRES))

        assert not store.consume_token(stored.id, TokenPurpose.PASSWORD_RESET, "old")
        assert store.consume_token(stored.id, TokenPurpose.PASSWORD_RESET, "new")

    def test_concurrent_consume_single_winner(self, store):
        stored = store.add(_credential())
        store.set_token(stored.id, TokenPurpose.PASSWORD_RESET, TokenRecord(token_hash="h1", expires_at=EXPIRES))

        barrier = threading.Barrier(8)
        results = []

        def consume():
            barrier.wait()
            results.append(store.consume_token(stored.id, TokenPurpose.PASSWORD_RESET, "h1"))

        threads = [threading.Thread(target=consume) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == 7


class TestUpdates:
    def test_update_password(self, store):
        stored = store.add(_credential())
        before = stored.updated_at

        assert store.update_password(stored.id, "$2b$04$other")
        updated = store.get(stored.id)
        assert updated.password_hash == "$2b$04$other"
        assert updated.updated_at >= before

    def test_mark_verified(self, store):
        stored = store.add(_credential())
        assert store.mark_verified(stored.id)
        assert store.get(stored.id).verified

    def test_activate_pending(self, store):
        stored = store.add(Credential(identifier="new-head@school.org", role=Role.ADMIN, password_hash=""))
        assert stored.is_pending

        assert store.activate(stored.id, "Nina", "$2b$04$real")
        active = store.get(stored.id)
        assert active.name == "Nina"
        assert active.password_hash == "$2b$04$real"
        assert active.verified
        assert not active.is_pending

    def test_unknown_credential(self, store):
        assert not store.update_password("cred_nope", "x")
        assert not store.mark_verified("cred_nope")
        assert not store.activate("cred_nope", "x", "y")


def test_fresh_store_is_empty():
    store = InMemoryCredentialStore()
    assert store.find_by_identifier("anyone@example.org", Role.ADMIN) is None
    assert store.find_by_token(TokenPurpose.PASSWORD_RESET, "h") is None


def test_record_expiry_roundtrip(store):
    stored = store.add(_credential())
    expires = EXPIRES + timedelta(minutes=30)
    store.set_token(stored.id, TokenPurpose.VERIFY_EMAIL, TokenRecord(token_hash="h", expires_at=expires))

    assert store.get(stored.id).verification_token.expires_at == expires
