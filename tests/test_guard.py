"""
Tests for the authorization guard.
"""

from datetime import timedelta

import pytest

from schoolauth.auth.guard import (
    Deny,
    DenyReason,
    Permit,
    Policy,
    bearer_from_header,
)
from schoolauth.core.roles import Role


@pytest.fixture
def parent_token(sessions):
    return sessions.issue("u1", Role.PARENT)


@pytest.fixture
def student_token(sessions):
    return sessions.issue("s1", Role.STUDENT)


# =============================================================================
# Authentication
# =============================================================================


class TestAuthenticate:
    def test_valid_token(self, guard, parent_token):
        claims = guard.authenticate(parent_token)
        assert claims.subject_id == "u1"
        assert claims.role == Role.PARENT

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    def test_absent_or_invalid(self, guard, token):
        result = guard.authenticate(token)
        assert isinstance(result, Deny)
        assert result.reason == DenyReason.UNAUTHORIZED

    def test_expired(self, guard, sessions, clock):
        token = sessions.issue("u1", Role.PARENT, ttl=timedelta(minutes=5))
        clock.advance(minutes=6)
        assert guard.authenticate(token).reason == DenyReason.UNAUTHORIZED


# =============================================================================
# Roles & Ownership
# =============================================================================


class TestAuthorizeRole:
    def test_student_denied_staff_route(self, guard, student_token):
        claims = guard.authenticate(student_token)
        verdict = guard.authorize_role(claims, [Role.ADMIN, Role.TEACHER])

        assert isinstance(verdict, Deny)
        assert verdict.reason == DenyReason.FORBIDDEN

    def test_allowed_role(self, guard, student_token):
        claims = guard.authenticate(student_token)
        verdict = guard.authorize_role(claims, [Role.STUDENT, Role.PARENT])

        assert isinstance(verdict, Permit)
        assert verdict.claims == claims

    def test_role_names_accepted(self, guard, parent_token):
        claims = guard.authenticate(parent_token)
        assert guard.authorize_role(claims, ["parent"])

    def test_empty_allow_list_denies(self, guard, parent_token):
        claims = guard.authenticate(parent_token)
        assert not guard.authorize_role(claims, [])


class TestAuthorizeOwnership:
    def test_owner_permitted(self, guard, parent_token):
        claims = guard.authenticate(parent_token)
        verdict = guard.authorize_ownership(claims, "u1")
        assert isinstance(verdict, Permit)

    def test_other_owner_forbidden(self, guard, parent_token):
        claims = guard.authenticate(parent_token)
        verdict = guard.authorize_ownership(claims, "u2")
        assert verdict == Deny(DenyReason.FORBIDDEN, verdict.detail)

    def test_missing_owner_forbidden(self, guard, parent_token):
        claims = guard.authenticate(parent_token)
        assert guard.authorize_ownership(claims, None).reason == DenyReason.FORBIDDEN


# =============================================================================
# Full Check
# =============================================================================


class TestCheck:
    def test_any_user(self, guard, parent_token):
        verdict = guard.check(parent_token)
        assert verdict
        assert verdict.claims.subject_id == "u1"

    def test_unauthenticated_short_circuits(self, guard):
        # No identity, so the role/ownership rules never get a say
        verdict = guard.check(None, Policy.owned_by("u1", Role.PARENT))
        assert verdict.reason == DenyReason.UNAUTHORIZED

    def test_forged_token_is_unauthorized_not_forbidden(self, guard, parent_token):
        forged = parent_token[:-4] + ("AAAA" if not parent_token.endswith("AAAA") else "BBBB")
        verdict = guard.check(forged, Policy.role_in(Role.ADMIN))
        assert verdict.reason == DenyReason.UNAUTHORIZED

    def test_role_and_owner(self, guard, parent_token):
        assert guard.check(parent_token, Policy.owned_by("u1", Role.PARENT))
        assert not guard.check(parent_token, Policy.owned_by("u1", Role.TEACHER))
        assert not guard.check(parent_token, Policy.owned_by("u2", Role.PARENT))

    def test_role_checked_before_owner(self, guard, parent_token):
        verdict = guard.check(parent_token, Policy.owned_by("u2", Role.TEACHER))
        assert verdict.detail.startswith("Requires role")

    def test_owned_by_none_never_permits(self, guard, parent_token):
        policy = Policy.owned_by(None)
        assert policy.check_owner
        assert guard.check(parent_token, policy).reason == DenyReason.FORBIDDEN


class TestPolicy:
    def test_any_user_has_no_rules(self):
        policy = Policy.any_user()
        assert policy.roles is None
        assert not policy.check_owner

    def test_roles_frozen(self):
        policy = Policy(roles=[Role.ADMIN, Role.TEACHER])
        assert policy.roles == frozenset({Role.ADMIN, Role.TEACHER})

    def test_owner_id_implies_check(self):
        assert Policy(owner_id="u1").check_owner


class TestBearerHeader:
    @pytest.mark.parametrize("header, expected", [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer abc", "abc"),
        ("  Bearer   abc  ", "abc"),
        ("Basic dXNlcjpwdw==", None),
        ("Bearer", None),
        ("Bearer ", None),
        ("", None),
        (None, None),
    ])
    def test_parse(self, header, expected):
        assert bearer_from_header(header) == expected
