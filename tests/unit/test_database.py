"""Unit tests for database helpers."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from credential_service.database import MIGRATIONS_DIR, health_check, run_migrations


class MockPoolAcquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *args):
        pass


@pytest.fixture
def mock_pool():
    conn = AsyncMock()
    pool = MagicMock()
    pool.acquire.return_value = MockPoolAcquire(conn)
    return pool, conn


def test_migrations_ship_with_package():
    files = sorted(p.name for p in MIGRATIONS_DIR.glob("*.sql"))
    assert files[0] == "001_credentials.sql"


class TestRunMigrations:
    async def test_applies_each_file(self, mock_pool):
        pool, conn = mock_pool

        applied = await run_migrations(pool)

        assert applied == conn.execute.await_count
        sql = conn.execute.call_args_list[0][0][0]
        assert "CREATE TABLE IF NOT EXISTS refresh_tokens" in sql
        assert "CREATE TABLE IF NOT EXISTS password_reset_tokens" in sql

    async def test_missing_directory(self, mock_pool, tmp_path):
        pool, conn = mock_pool

        assert await run_migrations(pool, tmp_path / "nope") == 0
        conn.execute.assert_not_awaited()

    async def test_failure_propagates(self, mock_pool):
        pool, conn = mock_pool
        conn.execute.side_effect = RuntimeError("syntax error")

        with pytest.raises(RuntimeError):
            await run_migrations(pool)


class TestHealthCheck:
    async def test_healthy(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchval.return_value = 1

        assert await health_check(pool) is True

    async def test_unhealthy_on_error(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchval.side_effect = ConnectionError("down")

        assert await health_check(pool) is False
