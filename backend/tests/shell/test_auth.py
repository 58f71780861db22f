"""Unit tests for auth module."""

from unittest.mock import MagicMock

import pytest

from src.shell.auth import (
    API_KEY_PREFIX,
    AuthClient,
    AuthError,
    generate_api_key,
    hash_api_key,
    parse_bearer_token,
    validate_api_key_format,
)


class TestGenerateApiKey:
    """Tests for generate_api_key."""

    def test_starts_with_prefix(self):
        """Generated key starts with lc_ prefix."""
        key = generate_api_key()
        assert key.startswith(API_KEY_PREFIX)

    def test_sufficient_length(self):
        """Generated key has sufficient length for security."""
        key = generate_api_key()
        # prefix (3) + base64 encoded 32 bytes (~43 chars)
        assert len(key) >= 40

    def test_unique_keys(self):
        """Each generated key is unique."""
        keys = [generate_api_key() for _ in range(100)]
        assert len(set(keys)) == 100


class TestHashApiKey:
    """Tests for hash_api_key."""

    def test_returns_32_char_hash(self):
        """Hash is exactly 32 characters."""
        assert len(hash_api_key("lc_test_key_12345678901234567890")) == 32

    def test_deterministic(self):
        """Same key always produces same hash."""
        key = "lc_test_key_12345678901234567890"
        assert hash_api_key(key) == hash_api_key(key)

    def test_different_keys_different_hashes(self):
        """Different keys produce different hashes."""
        assert hash_api_key("lc_key1_123456789012345678901234") != hash_api_key(
            "lc_key2_123456789012345678901234"
        )

    def test_hash_is_hex(self):
        """Hash contains only hex characters."""
        hashed = hash_api_key("lc_test_key_12345678901234567890")
        assert all(c in "0123456789abcdef" for c in hashed)


class TestValidateApiKeyFormat:
    """Tests for validate_api_key_format."""

    def test_valid_key(self):
        assert validate_api_key_format(generate_api_key()) is True

    def test_empty_string(self):
        assert validate_api_key_format("") is False

    def test_none_value(self):
        assert validate_api_key_format(None) is False

    def test_wrong_prefix(self):
        """Key with another app's prefix returns False."""
        assert validate_api_key_format("flr_12345678901234567890123456789012345678") is False

    def test_minimum_length(self):
        """prefix (3) + 37 chars = 40 minimum."""
        assert validate_api_key_format("lc_" + "a" * 37) is True

    def test_below_minimum_length(self):
        assert validate_api_key_format("lc_" + "a" * 36) is False


class TestParseBearerToken:
    """Tests for parse_bearer_token."""

    def test_extracts_token(self):
        assert parse_bearer_token("Bearer lc_abc") == "lc_abc"

    def test_missing_header(self):
        assert parse_bearer_token(None) is None
        assert parse_bearer_token("") is None

    def test_other_scheme(self):
        assert parse_bearer_token("Basic dXNlcjpwYXNz") is None

    def test_empty_token(self):
        assert parse_bearer_token("Bearer   ") is None


class TestAuthClient:
    """Tests for AuthClient against a mocked Firestore client."""

    def test_register_creates_user_and_profile(self):
        """Registration writes the account and an empty profile."""
        db = MagicMock()
        api_key, user_id = AuthClient(db).register_user("me@example.com")

        assert api_key.startswith("lc_")
        assert user_id == hash_api_key(api_key)
        user_ref = db.collection.return_value.document.return_value
        user_ref.set.assert_called_once()
        assert user_ref.set.call_args[0][0]["email"] == "me@example.com"
        profile_ref = user_ref.collection.return_value.document.return_value
        profile_ref.set.assert_called_once()
        assert profile_ref.set.call_args[0][0]["streak_count"] == 0

    def test_get_user_id_for_known_key(self):
        db = MagicMock()
        db.collection.return_value.document.return_value.get.return_value.exists = True
        key = generate_api_key()
        assert AuthClient(db).get_user_id(f"Bearer {key}") == hash_api_key(key)

    def test_get_user_id_without_header(self):
        with pytest.raises(AuthError, match="Not authorized."):
            AuthClient(MagicMock()).get_user_id(None)

    def test_get_user_id_for_unknown_key(self):
        db = MagicMock()
        db.collection.return_value.document.return_value.get.return_value.exists = False
        with pytest.raises(AuthError, match="token invalid"):
            AuthClient(db).get_user_id(f"Bearer {generate_api_key()}")

    def test_lookup_failure_is_invalid(self):
        """Store errors during validation are treated as an invalid key."""
        db = MagicMock()
        db.collection.return_value.document.return_value.get.side_effect = RuntimeError("down")
        assert AuthClient(db).validate_api_key(generate_api_key()) is None
