"""Credential store: users, refresh-token records and password reset records."""

from datetime import datetime, timezone
from typing import Optional, Protocol
from uuid import UUID, uuid4

import asyncpg
from asyncpg.exceptions import UniqueViolationError
import structlog

from credential_service.models.user import PasswordResetToken, RefreshToken, User
from credential_service.services.errors import DuplicateEmailError

logger = structlog.get_logger(__name__)


def normalize_email(email: str) -> str:
    """Emails are unique case-insensitively and stored lower-cased."""
    return email.strip().lower()


class CredentialStore(Protocol):
    """Persistence operations the lifecycle engine depends on.

    Updates that retire a record are conditional: they return True only when
    this call flipped the flag, so concurrent callers cannot both win.
    """

    async def find_user_by_email(self, email: str) -> Optional[tuple[User, str]]: ...

    async def find_user_by_id(self, user_id: UUID) -> Optional[User]: ...

    async def create_user(self, email: str, password_hash: str, name: Optional[str]) -> User: ...

    async def update_user_password(self, user_id: UUID, password_hash: str) -> bool: ...

    async def create_refresh_token(self, jti: str, user_id: UUID, expires_at: datetime) -> RefreshToken: ...

    async def find_refresh_token_by_jti(self, jti: str) -> Optional[RefreshToken]: ...

    async def revoke_refresh_token(self, token_id: UUID) -> bool: ...

    async def revoke_all_refresh_tokens_for_user(self, user_id: UUID) -> int: ...

    async def create_password_reset_token(
        self, user_id: UUID, token_hash: str, expires_at: datetime
    ) -> PasswordResetToken: ...

    async def find_active_password_reset_tokens(self, now: datetime) -> list[PasswordResetToken]: ...

    async def mark_password_reset_token_used(self, token_id: UUID) -> bool: ...

    async def consume_password_reset_token(
        self, token_id: UUID, user_id: UUID, password_hash: str
    ) -> bool: ...


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command status like 'UPDATE 3'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


def _user_from_row(row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _refresh_token_from_row(row) -> RefreshToken:
    return RefreshToken(
        id=row["id"],
        jti=row["jti"],
        user_id=row["user_id"],
        expires_at=row["expires_at"],
        is_revoked=row["is_revoked"],
        created_at=row["created_at"],
    )


def _reset_token_from_row(row) -> PasswordResetToken:
    return PasswordResetToken(
        id=row["id"],
        user_id=row["user_id"],
        token_hash=row["token_hash"],
        expires_at=row["expires_at"],
        is_used=row["is_used"],
        created_at=row["created_at"],
    )


class PostgresCredentialStore:
    """CredentialStore backed by PostgreSQL through an asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def find_user_by_email(self, email: str) -> Optional[tuple[User, str]]:
        """Get a user by email (case-insensitive).

        Returns:
            Tuple of (User, password_hash) or None if not found
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, email, name, password_hash, created_at, updated_at
                FROM users
                WHERE LOWER(email) = LOWER($1)
                """,
                normalize_email(email),
            )

        if row is None:
            return None

        return _user_from_row(row), row["password_hash"]

    async def find_user_by_id(self, user_id: UUID) -> Optional[User]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, email, name, created_at, updated_at
                FROM users
                WHERE id = $1
                """,
                user_id,
            )

        return _user_from_row(row) if row is not None else None

    async def create_user(self, email: str, password_hash: str, name: Optional[str]) -> User:
        """Insert a new user.

        Raises:
            DuplicateEmailError: If the email is already registered
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)
        email = normalize_email(email)

        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO users (id, email, name, password_hash, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    """,
                    user_id,
                    email,
                    name,
                    password_hash,
                    now,
                    now,
                )
        except UniqueViolationError:
            raise DuplicateEmailError(email)

        logger.info("user_created", user_id=str(user_id))

        return User(id=user_id, email=email, name=name, created_at=now, updated_at=now)

    async def update_user_password(self, user_id: UUID, password_hash: str) -> bool:
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET password_hash = $1, updated_at = $2
                WHERE id = $3
                """,
                password_hash,
                datetime.now(timezone.utc),
                user_id,
            )

        return _affected_rows(result) == 1

    async def create_refresh_token(self, jti: str, user_id: UUID, expires_at: datetime) -> RefreshToken:
        token_id = uuid4()
        now = datetime.now(timezone.utc)

        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO refresh_tokens (id, jti, user_id, expires_at, is_revoked, created_at)
                VALUES ($1, $2, $3, $4, FALSE, $5)
                """,
                token_id,
                jti,
                user_id,
                expires_at,
                now,
            )

        return RefreshToken(
            id=token_id,
            jti=jti,
            user_id=user_id,
            expires_at=expires_at,
            is_revoked=False,
            created_at=now,
        )

    async def find_refresh_token_by_jti(self, jti: str) -> Optional[RefreshToken]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, jti, user_id, expires_at, is_revoked, created_at
                FROM refresh_tokens
                WHERE jti = $1
                """,
                jti,
            )

        return _refresh_token_from_row(row) if row is not None else None

    async def revoke_refresh_token(self, token_id: UUID) -> bool:
        """Revoke a refresh token only if it is still active.

        Returns:
            True if this call revoked the token, False if it was already revoked
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE refresh_tokens
                SET is_revoked = TRUE
                WHERE id = $1 AND is_revoked = FALSE
                """,
                token_id,
            )

        return _affected_rows(result) == 1

    async def revoke_all_refresh_tokens_for_user(self, user_id: UUID) -> int:
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE refresh_tokens
                SET is_revoked = TRUE
                WHERE user_id = $1 AND is_revoked = FALSE
                """,
                user_id,
            )

        return _affected_rows(result)

    async def create_password_reset_token(
        self, user_id: UUID, token_hash: str, expires_at: datetime
    ) -> PasswordResetToken:
        token_id = uuid4()
        now = datetime.now(timezone.utc)

        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO password_reset_tokens (id, user_id, token_hash, expires_at, is_used, created_at)
                VALUES ($1, $2, $3, $4, FALSE, $5)
                """,
                token_id,
                user_id,
                token_hash,
                expires_at,
                now,
            )

        return PasswordResetToken(
            id=token_id,
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            is_used=False,
            created_at=now,
        )

    async def find_active_password_reset_tokens(self, now: datetime) -> list[PasswordResetToken]:
        """Return unused reset tokens whose expiry is not before ``now``."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, user_id, token_hash, expires_at, is_used, created_at
                FROM password_reset_tokens
                WHERE is_used = FALSE AND expires_at >= $1
                ORDER BY created_at DESC
                """,
                now,
            )

        return [_reset_token_from_row(row) for row in rows]

    async def mark_password_reset_token_used(self, token_id: UUID) -> bool:
        """Consume a reset token.

        Returns:
            True if this call consumed the token, False if it was already used
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE password_reset_tokens
                SET is_used = TRUE
                WHERE id = $1 AND is_used = FALSE
                """,
                token_id,
            )

        return _affected_rows(result) == 1

    async def consume_password_reset_token(
        self, token_id: UUID, user_id: UUID, password_hash: str
    ) -> bool:
        """Consume a reset token and set the user's new password atomically.

        Both statements run in one transaction: if the password update fails
        the token stays unused and the secret can be retried.

        Returns:
            True if this call consumed the token, False if it was already used

        Raises:
            LookupError: If the user no longer exists (the claim is rolled back)
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                claimed = await conn.execute(
                    """
                    UPDATE password_reset_tokens
                    SET is_used = TRUE
                    WHERE id = $1 AND is_used = FALSE
                    """,
                    token_id,
                )
                if _affected_rows(claimed) != 1:
                    return False

                updated = await conn.execute(
                    """
                    UPDATE users
                    SET password_hash = $1, updated_at = $2
                    WHERE id = $3
                    """,
                    password_hash,
                    datetime.now(timezone.utc),
                    user_id,
                )
                if _affected_rows(updated) != 1:
                    raise LookupError(f"User {user_id} not found")

        return True
