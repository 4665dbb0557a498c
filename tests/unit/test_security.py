"""Tests for password hashing, strength validation and opaque tokens."""

from unittest.mock import patch

import pytest

from safra_auth.core.errors import AuthErrorCode, InternalAuthError, WeakPasswordError
from safra_auth.core.security import (
    PasswordHasher,
    generate_opaque_token,
    hash_opaque_token,
    validate_password_strength,
)


@pytest.mark.unit
class TestPasswordHasher:
    """Tests for PasswordHasher."""

    def test_hash_and_verify(self, hasher: PasswordHasher):
        digest = hasher.hash("Password123")

        assert digest != "Password123"
        assert hasher.verify(digest, "Password123") is True
        assert hasher.verify(digest, "Password124") is False

    def test_same_password_different_digests(self, hasher: PasswordHasher):
        """Salt is random per call."""
        assert hasher.hash("Password123") != hasher.hash("Password123")

    def test_uses_configured_rounds(self, hasher: PasswordHasher):
        assert hasher.hash("Password123").startswith("$2b$04$")

    @pytest.mark.parametrize("digest", ["", "not-a-bcrypt-hash", "$2b$04$tooshort"])
    def test_malformed_digest_returns_false(self, hasher: PasswordHasher, digest: str):
        assert hasher.verify(digest, "Password123") is False

    def test_long_password_prehashed(self, hasher: PasswordHasher):
        """Passwords over bcrypt's 72 byte limit still distinguish their tails."""
        base = "a" * 80
        digest = hasher.hash(base + "1")

        assert hasher.verify(digest, base + "1") is True
        assert hasher.verify(digest, base + "2") is False

    def test_verify_dummy_always_false(self, hasher: PasswordHasher):
        assert hasher.verify_dummy("safra-auth-dummy-password") is False
        assert hasher.verify_dummy("anything") is False

    def test_hash_failure_raises_internal_error(self, hasher: PasswordHasher):
        with patch("safra_auth.core.security.bcrypt.hashpw", side_effect=ValueError("boom")):
            with pytest.raises(InternalAuthError) as exc_info:
                hasher.hash("Password123")

        assert exc_info.value.code == AuthErrorCode.INTERNAL_ERROR

    async def test_async_wrappers(self, hasher: PasswordHasher):
        digest = await hasher.hash_async("Password123")

        assert await hasher.verify_async(digest, "Password123") is True
        assert await hasher.verify_dummy_async("Password123") is False


@pytest.mark.unit
class TestPasswordStrength:
    def test_accepts_minimum_length(self):
        validate_password_strength("12345678")

    def test_rejects_short_password(self):
        with pytest.raises(WeakPasswordError) as exc_info:
            validate_password_strength("1234567")

        assert exc_info.value.code == AuthErrorCode.WEAK_PASSWORD
        assert "8" in exc_info.value.message

    def test_custom_minimum(self):
        with pytest.raises(WeakPasswordError):
            validate_password_strength("Password123", min_length=12)


@pytest.mark.unit
class TestOpaqueTokens:
    def test_tokens_are_unique_and_long(self):
        tokens = {generate_opaque_token() for _ in range(50)}

        assert len(tokens) == 50
        assert all(len(t) >= 43 for t in tokens)

    def test_hash_is_stable_sha256(self):
        assert hash_opaque_token("abc") == hash_opaque_token("abc")
        assert len(hash_opaque_token("abc")) == 64
        assert hash_opaque_token("abc") != hash_opaque_token("abd")
