"""Database connection pool and migration management.

The pool is created once at process start and handed to the credential
store explicitly; this module keeps no module-level connection state.
"""

from pathlib import Path

import asyncpg
import structlog

from credential_service.config import Settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


async def create_pool(settings: Settings) -> asyncpg.Pool:
    """Create the asyncpg connection pool.

    Args:
        settings: Application settings providing ``postgres_url``

    Returns:
        asyncpg connection pool
    """
    try:
        pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=2,
            max_size=10,
            command_timeout=60,
        )
    except Exception as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise

    logger.info("database_pool_created", min_size=2, max_size=10)
    return pool


async def close_pool(pool: asyncpg.Pool) -> None:
    """Close the database connection pool."""
    await pool.close()
    logger.info("database_pool_closed")


async def run_migrations(pool: asyncpg.Pool, migrations_dir: Path = MIGRATIONS_DIR) -> int:
    """Run all SQL migrations in filename order.

    Migrations are idempotent (IF NOT EXISTS) and can be re-run safely.

    Returns:
        Number of migration files applied
    """
    if not migrations_dir.exists():
        logger.warning("migrations_directory_not_found", path=str(migrations_dir))
        return 0

    migration_files = sorted(migrations_dir.glob("*.sql"))

    if not migration_files:
        logger.info("no_migrations_found")
        return 0

    async with pool.acquire() as conn:
        for migration_file in migration_files:
            try:
                await conn.execute(migration_file.read_text())
            except Exception as e:
                logger.error(
                    "migration_failed",
                    file=migration_file.name,
                    error=str(e),
                )
                raise
            logger.info("migration_applied", file=migration_file.name)

    return len(migration_files)


async def health_check(pool: asyncpg.Pool) -> bool:
    """Check database connectivity.

    Returns:
        True if database is healthy, False otherwise
    """
    try:
        async with pool.acquire() as conn:
            result = await conn.fetchval("SELECT 1")
            return result == 1
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
