"""
Unit tests for core.security module.
Tests admin password hashing, JWT token creation/validation.
"""
import pytest
import datetime as dt
import jwt
from plugin_gate.core.security import (
    hash_password,
    verify_password,
    create_access_token,
    decode_access_token,
    ACCESS_TOKEN_EXPIRE_MINUTES,
)


class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_hash_password_returns_different_hash_each_time(self):
        """Password hashing should produce different hashes (salt included)."""
        password = "TestPassword123"
        assert hash_password(password) != hash_password(password)

    def test_hash_is_argon2(self):
        """Stored hashes use the argon2 scheme, never plain text."""
        hashed = hash_password("TestPassword123")
        assert hashed.startswith("$argon2")
        assert "TestPassword123" not in hashed

    def test_verify_password_correct_password(self):
        hashed = hash_password("TestPassword123")
        assert verify_password("TestPassword123", hashed) is True

    def test_verify_password_incorrect_password(self):
        hashed = hash_password("TestPassword123")
        assert verify_password("WrongPassword456", hashed) is False


class TestJWTTokens:
    """Tests for admin JWT creation and validation."""

    def test_token_carries_admin_identity(self):
        """Token should contain admin id as subject and the username."""
        token = create_access_token("42", "root")
        payload = decode_access_token(token)
        assert payload["sub"] == "42"
        assert payload["username"] == "root"

    def test_create_access_token_has_expiration(self):
        """Token should have issued-at and a future expiration."""
        payload = decode_access_token(create_access_token("1", "admin"))
        assert "iat" in payload
        assert payload["exp"] > dt.datetime.now(dt.timezone.utc).timestamp()

    def test_token_expiration_time(self):
        """Token lifetime should match ACCESS_TOKEN_EXPIRE_MINUTES."""
        payload = decode_access_token(create_access_token("1", "admin"))
        diff_minutes = (payload["exp"] - payload["iat"]) / 60
        # Allow small tolerance for timing
        assert abs(diff_minutes - ACCESS_TOKEN_EXPIRE_MINUTES) < 1

    def test_decode_access_token_invalid_token(self):
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_secret(self):
        """A token signed with our secret must not verify under another one."""
        token = create_access_token("1", "admin")
        with pytest.raises(jwt.InvalidSignatureError):
            jwt.decode(token, "wrong-secret", algorithms=["HS256"])

    def test_expired_token_is_rejected(self):
        from plugin_gate.core.security import JWT_ALG, JWT_SECRET

        past = dt.datetime.now(dt.timezone.utc) - dt.timedelta(minutes=5)
        token = jwt.encode({"sub": "1", "iat": past, "exp": past}, JWT_SECRET, algorithm=JWT_ALG)
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_access_token(token)
