"""
Unit tests for token decoding and local account resolution
"""
import time

import pytest
from fastapi import HTTPException
from jose import jwt

from trendify.core.auth import TokenUser, decode_token, user_from_claims
from trendify.services.user_service import find_or_create_guest, resolve_local_user


class TestDecodeToken:

    def test_valid_token(self):
        now = int(time.time())
        token = jwt.encode(
            {"sub": "user_ama", "email": "ama@example.com", "role": "staff", "iat": now, "exp": now + 60},
            "test-auth-secret",
            algorithm="HS256",
        )

        payload = decode_token(token)

        assert payload["sub"] == "user_ama"
        assert payload["role"] == "staff"

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "x", "email": "x@example.com"}, "other-secret", algorithm="HS256")

        with pytest.raises(HTTPException) as exc:
            decode_token(token)
        assert exc.value.status_code == 401

    def test_expired_token(self):
        token = jwt.encode({"sub": "x", "email": "x@example.com", "exp": int(time.time()) - 10}, "test-auth-secret", algorithm="HS256")

        with pytest.raises(HTTPException) as exc:
            decode_token(token)
        assert exc.value.detail == "Token has expired"


class TestClaims:
    """Test mapping claims to TokenUser"""

    def test_id_claim_preferred_over_sub(self):
        user = user_from_claims({"id": 42, "sub": "ignored", "email": "ama@example.com"})

        assert user.id == "42"
        assert user.role == "customer"

    def test_missing_email(self):
        assert user_from_claims({"sub": "user_ama"}) is None

    @pytest.mark.parametrize("role,required,allowed", [
        ("admin", "staff", True),
        ("staff", "staff", True),
        ("customer", "staff", False),
        ("unknown", "customer", False),
    ])
    def test_role_hierarchy(self, role, required, allowed):
        assert TokenUser(id="1", email="a@example.com", role=role).has_role(required) is allowed


class TestResolveLocalUser:
    """Test linking identities to local rows"""

    def test_creates_user_on_first_login(self, db):
        user = resolve_local_user(db, TokenUser(id="user_new", email="New@Example.com", name="Akosua"))

        assert user.id is not None
        assert user.email == "new@example.com"
        assert user.role == "customer"
        assert user.last_login_at is not None

    def test_links_guest_by_email(self, db):
        """Test a guest who signs up keeps their account row"""
        # Arrange
        guest = find_or_create_guest(db, "ama@example.com")
        db.commit()

        # Act
        user = resolve_local_user(db, TokenUser(id="user_ama", email="AMA@example.com"))

        # Assert
        assert user.id == guest.id
        assert user.external_id == "user_ama"

    def test_role_follows_token(self, db, user_factory):
        user_factory(role="customer")

        user = resolve_local_user(db, TokenUser(id="user_ama", email="ama@example.com", role="admin"))

        assert user.role == "admin"
