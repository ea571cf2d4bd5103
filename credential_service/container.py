"""Process-wide dependencies, constructed once at startup and passed explicitly."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import asyncpg
import structlog

from credential_service.config import Settings
from credential_service.database import close_pool, create_pool, run_migrations
from credential_service.services.auth_service import RESET_TOKEN_EXPIRE_MINUTES, AuthService
from credential_service.services.credential_store import CredentialStore, PostgresCredentialStore
from credential_service.services.notifier import EmailNotifier, Notifier
from credential_service.services.password_hasher import PasswordHasher
from credential_service.services.token_codec import TokenCodec

logger = structlog.get_logger(__name__)


@dataclass
class Container:
    """Everything a request handler may need, wired together."""

    settings: Settings
    store: CredentialStore
    hasher: PasswordHasher
    codec: TokenCodec
    notifier: Notifier
    auth_service: AuthService
    pool: Optional[asyncpg.Pool] = None


def build_token_codec(settings: Settings) -> TokenCodec:
    return TokenCodec(
        access_secret=settings.jwt_access_secret,
        access_ttl=timedelta(minutes=settings.jwt_access_expire_minutes),
        refresh_secret=settings.jwt_refresh_secret,
        refresh_ttl=timedelta(days=settings.jwt_refresh_expire_days),
    )


def assemble_container(
    settings: Settings,
    store: CredentialStore,
    notifier: Optional[Notifier] = None,
    pool: Optional[asyncpg.Pool] = None,
) -> Container:
    """Wire the lifecycle service around an already constructed store."""
    hasher = PasswordHasher(rounds=settings.password_hash_rounds)
    codec = build_token_codec(settings)
    notifier = notifier or EmailNotifier(settings, reset_expire_minutes=RESET_TOKEN_EXPIRE_MINUTES)

    auth_service = AuthService(
        store=store,
        hasher=hasher,
        codec=codec,
        notifier=notifier,
        refresh_token_store_ttl=timedelta(days=settings.refresh_token_store_days),
    )

    return Container(
        settings=settings,
        store=store,
        hasher=hasher,
        codec=codec,
        notifier=notifier,
        auth_service=auth_service,
        pool=pool,
    )


async def build_container(settings: Settings) -> Container:
    """Create the database pool, apply migrations and wire all services."""
    pool = await create_pool(settings)
    try:
        await run_migrations(pool)
    except Exception:
        await close_pool(pool)
        raise

    container = assemble_container(settings, PostgresCredentialStore(pool), pool=pool)
    logger.info("container_built", password_hash_rounds=settings.password_hash_rounds)
    return container


async def close_container(container: Container) -> None:
    """Release resources held by the container."""
    if container.pool is not None:
        await close_pool(container.pool)
