"""Pytest configuration and fixtures.

The lifecycle tests run against an in-memory credential store and a
recording notifier so they exercise the real hasher, codec and service
without Postgres or SMTP.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Generator, Optional
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest

from credential_service.config import Settings
from credential_service.container import Container, assemble_container, build_token_codec
from credential_service.models.user import PasswordResetToken, RefreshToken, User
from credential_service.services.auth_service import AuthService
from credential_service.services.credential_store import normalize_email
from credential_service.services.errors import DuplicateEmailError, NotificationDeliveryError
from credential_service.services.password_hasher import PasswordHasher

ACCESS_SECRET = "test-access-secret-for-unit-tests"
REFRESH_SECRET = "test-refresh-secret-for-unit-tests"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class InMemoryCredentialStore:
    """CredentialStore keeping records in dicts, with the same conditional updates."""

    def __init__(self):
        self.users: dict[UUID, tuple[User, str]] = {}
        self.refresh_tokens: dict[UUID, RefreshToken] = {}
        self.reset_tokens: dict[UUID, PasswordResetToken] = {}
        self.bulk_revoke_failures = 0
        self.password_update_failures = 0

    async def find_user_by_email(self, email: str) -> Optional[tuple[User, str]]:
        email = normalize_email(email)
        for user, password_hash in self.users.values():
            if user.email == email:
                return user, password_hash
        return None

    async def find_user_by_id(self, user_id: UUID) -> Optional[User]:
        found = self.users.get(user_id)
        return found[0] if found else None

    async def create_user(self, email: str, password_hash: str, name: Optional[str]) -> User:
        email = normalize_email(email)
        if any(user.email == email for user, _ in self.users.values()):
            raise DuplicateEmailError(email)
        now = datetime.now(timezone.utc)
        user = User(id=uuid4(), email=email, name=name, created_at=now, updated_at=now)
        self.users[user.id] = (user, password_hash)
        return user

    async def update_user_password(self, user_id: UUID, password_hash: str) -> bool:
        if user_id not in self.users:
            return False
        user, _ = self.users[user_id]
        self.users[user_id] = (user, password_hash)
        return True

    async def create_refresh_token(self, jti: str, user_id: UUID, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(
            id=uuid4(),
            jti=jti,
            user_id=user_id,
            expires_at=expires_at,
            created_at=datetime.now(timezone.utc),
        )
        self.refresh_tokens[record.id] = record
        return record

    async def find_refresh_token_by_jti(self, jti: str) -> Optional[RefreshToken]:
        # Yield so concurrent callers interleave between lookup and revoke
        await asyncio.sleep(0)
        for record in self.refresh_tokens.values():
            if record.jti == jti:
                return record
        return None

    async def revoke_refresh_token(self, token_id: UUID) -> bool:
        record = self.refresh_tokens.get(token_id)
        if record is None or record.is_revoked:
            return False
        self.refresh_tokens[token_id] = record.model_copy(update={"is_revoked": True})
        return True

    async def revoke_all_refresh_tokens_for_user(self, user_id: UUID) -> int:
        if self.bulk_revoke_failures > 0:
            self.bulk_revoke_failures -= 1
            raise ConnectionError("connection reset")
        count = 0
        for token_id, record in list(self.refresh_tokens.items()):
            if record.user_id == user_id and not record.is_revoked:
                self.refresh_tokens[token_id] = record.model_copy(update={"is_revoked": True})
                count += 1
        return count

    async def create_password_reset_token(
        self, user_id: UUID, token_hash: str, expires_at: datetime
    ) -> PasswordResetToken:
        record = PasswordResetToken(
            id=uuid4(),
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            created_at=datetime.now(timezone.utc),
        )
        self.reset_tokens[record.id] = record
        return record

    async def find_active_password_reset_tokens(self, now: datetime) -> list[PasswordResetToken]:
        return [
            record
            for record in self.reset_tokens.values()
            if not record.is_used and record.expires_at >= now
        ]

    async def mark_password_reset_token_used(self, token_id: UUID) -> bool:
        record = self.reset_tokens.get(token_id)
        if record is None or record.is_used:
            return False
        self.reset_tokens[token_id] = record.model_copy(update={"is_used": True})
        return True

    async def consume_password_reset_token(
        self, token_id: UUID, user_id: UUID, password_hash: str
    ) -> bool:
        # A failure leaves nothing changed, like a rolled back transaction
        if self.password_update_failures > 0:
            self.password_update_failures -= 1
            raise ConnectionError("connection reset")
        record = self.reset_tokens.get(token_id)
        if record is None or record.is_used:
            return False
        if user_id not in self.users:
            raise LookupError(f"User {user_id} not found")
        self.reset_tokens[token_id] = record.model_copy(update={"is_used": True})
        user, _ = self.users[user_id]
        self.users[user_id] = (user, password_hash)
        return True


class RecordingNotifier:
    """Notifier that records messages instead of sending them."""

    def __init__(self, fail_welcome: bool = False, fail_reset: bool = False):
        self.fail_welcome = fail_welcome
        self.fail_reset = fail_reset
        self.welcomes: list[tuple[str, Optional[str]]] = []
        self.resets: list[tuple[str, str]] = []

    async def send_welcome(self, email: str, name: Optional[str] = None) -> None:
        if self.fail_welcome:
            raise NotificationDeliveryError("Failed to send welcome email")
        self.welcomes.append((email, name))

    async def send_password_reset(self, email: str, raw_secret: str) -> None:
        if self.fail_reset:
            raise NotificationDeliveryError("Failed to send password_reset email")
        self.resets.append((email, raw_secret))

    @property
    def last_reset_secret(self) -> str:
        return self.resets[-1][1]


class FakeClock:
    """Controllable replacement for the service's UTC clock."""

    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    """Settings with deterministic secrets and the cheapest bcrypt cost."""
    return Settings(
        jwt_access_secret=ACCESS_SECRET,
        jwt_refresh_secret=REFRESH_SECRET,
        jwt_access_expire_minutes=15,
        jwt_refresh_expire_days=7,
        password_hash_rounds=4,
        app_url="https://app.example.com",
    )


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def codec(settings):
    return build_token_codec(settings)


@pytest.fixture
def auth_service(store, hasher, codec, notifier, clock) -> AuthService:
    """AuthService wired to in-memory collaborators and a controllable clock."""
    return AuthService(
        store=store,
        hasher=hasher,
        codec=codec,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def container(settings, store, notifier) -> Container:
    return assemble_container(settings, store, notifier=notifier)


@pytest.fixture
def client(container) -> Generator:
    """Create a TestClient whose lifespan uses the in-memory container."""
    with (
        patch("credential_service.main.build_container", new_callable=AsyncMock, return_value=container),
        patch("credential_service.main.close_container", new_callable=AsyncMock),
    ):
        from fastapi.testclient import TestClient
        from credential_service.main import app

        with TestClient(app) as tc:
            yield tc
