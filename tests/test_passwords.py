"""
Tests for password hashing.
"""

import pytest

from schoolauth.auth.config import AuthConfig
from schoolauth.auth.passwords import PasswordHasher


class TestHashAndVerify:
    def test_roundtrip(self, hasher):
        hashed = hasher.hash("correct horse")
        assert hasher.verify("correct horse", hashed)

    def test_wrong_password(self, hasher):
        hashed = hasher.hash("correct horse")
        assert not hasher.verify("battery staple", hashed)
        assert not hasher.verify("Correct horse", hashed)

    def test_salted(self, hasher):
        first = hasher.hash("same input")
        second = hasher.hash("same input")

        assert first != second
        assert hasher.verify("same input", first)
        assert hasher.verify("same input", second)

    def test_unicode(self, hasher):
        hashed = hasher.hash("pässwörd-日本")
        assert hasher.verify("pässwörd-日本", hashed)
        assert not hasher.verify("passwort-日本", hashed)

    def test_default_cost_factor_is_12(self):
        hasher = PasswordHasher()
        assert hasher.hash("pw").startswith("$2b$12$")

    def test_cost_from_config(self):
        hasher = PasswordHasher.from_config(AuthConfig(signing_key="k", bcrypt_rounds=5))
        assert hasher.hash("pw").startswith("$2b$05$")


class TestVerifyNeverRaises:
    @pytest.mark.parametrize("bad_hash", [
        "",
        "not-a-hash",
        "$2b$12$tooshort",
        "$2b$99$" + "a" * 53,
    ])
    def test_malformed_hash(self, hasher, bad_hash):
        assert hasher.verify("pw", bad_hash) is False

    def test_none_hash(self, hasher):
        assert hasher.verify("pw", None) is False

    def test_none_password(self, hasher):
        assert hasher.verify(None, hasher.hash("pw")) is False

    def test_overlong_password(self, hasher):
        hashed = hasher.hash("a" * 72)
        # bcrypt would only compare the first 72 bytes
        assert hasher.verify("a" * 73, hashed) is False


class TestLimits:
    def test_hash_rejects_more_than_72_bytes(self, hasher):
        with pytest.raises(ValueError):
            hasher.hash("x" * 73)

    def test_multibyte_counted_in_bytes(self, hasher):
        with pytest.raises(ValueError):
            hasher.hash("é" * 37)  # 74 bytes


class TestDummyHash:
    def test_same_cost_as_real_hashes(self, hasher):
        assert hasher.dummy_hash.startswith("$2b$04$")
        assert not hasher.needs_rehash(hasher.dummy_hash)

    def test_verify_dummy_is_always_false(self, hasher):
        assert hasher.verify_dummy("anything") is False
        assert hasher.verify_dummy("") is False


class TestNeedsRehash:
    def test_same_cost(self, hasher):
        assert not hasher.needs_rehash(hasher.hash("pw"))

    def test_different_cost(self, hasher):
        old = PasswordHasher(rounds=5).hash("pw")
        assert hasher.needs_rehash(old)

    def test_garbage(self, hasher):
        assert hasher.needs_rehash("plaintext")
