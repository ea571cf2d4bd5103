"""Unit tests for PasswordHasher."""

import pytest

from credential_service.services.password_hasher import PasswordHasher


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


class TestPasswordHasher:
    """Tests for bcrypt hash / verify."""

    def test_hash_is_bcrypt_with_configured_cost(self, hasher):
        hashed = hasher.hash_sync("my-secret-pw")

        assert hashed.startswith("$2b$04$")
        assert len(hashed) == 60

    def test_hash_uses_unique_salts(self, hasher):
        assert hasher.hash_sync("same-password") != hasher.hash_sync("same-password")

    def test_verify_correct_and_wrong(self, hasher):
        hashed = hasher.hash_sync("right-password")

        assert hasher.verify_sync("right-password", hashed) is True
        assert hasher.verify_sync("wrong-password", hashed) is False

    def test_verify_malformed_hash_is_false(self, hasher):
        assert hasher.verify_sync("anything", "not-a-bcrypt-hash") is False

    async def test_async_round_trip(self, hasher):
        hashed = await hasher.hash("async-password")

        assert await hasher.verify("async-password", hashed) is True
        assert await hasher.verify("other-password", hashed) is False
