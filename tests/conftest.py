"""Shared test fixtures: a PostgreSQL testcontainer with migrations applied.

Integration tests use a real PostgreSQL container managed by
testcontainers-python. The container is session-scoped (started once per
test run). Each test function gets an isolated DB session (via savepoint
rollback).

Requires Docker. Tests needing the container are marked with
``@pytest.mark.integration`` and skipped when Docker is unreachable.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import docker
import pytest
from docker.errors import DockerException
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from testcontainers.postgres import PostgresContainer

from tavern.api.settings import _get_settings_cached


def _set_env(key: str, value: str) -> None:
    """Set an env var and invalidate the settings cache."""
    os.environ[key] = value
    _get_settings_cached.cache_clear()


def _docker_available() -> bool:
    try:
        client = docker.from_env()
        try:
            client.ping()
        finally:
            client.close()
    except (DockerException, OSError):
        return False
    return True


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    integration = [item for item in items if item.get_closest_marker("integration")]
    if not integration or _docker_available():
        return
    skip = pytest.mark.skip(reason="Docker is not available")
    for item in integration:
        item.add_marker(skip)


# ---------------------------------------------------------------------------
# Session-scoped: container, URL and schema migration
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def pg_container() -> Iterator[PostgresContainer]:
    """Start a PostgreSQL 17 container for the test session."""
    with PostgresContainer(
        image="postgres:17",
        username="test",
        password="test",
        dbname="tavern_test",
        driver="psycopg",
    ) as pg:
        yield pg


@pytest.fixture(scope="session")
def pg_url(pg_container: PostgresContainer) -> str:
    """PostgreSQL URL (psycopg3 dialect) with Alembic migrations applied."""
    url = pg_container.get_connection_url()
    _set_env("TAVERN_DATABASE_URL", url)

    # Apply all migrations using the packaged alembic.ini (same config as CLI).
    from alembic import command
    from alembic.config import Config

    ini_path = Path(__file__).parent.parent / "tavern" / "api" / "alembic.ini"
    command.upgrade(Config(str(ini_path)), "head")

    return url


@pytest.fixture(scope="session")
def async_engine(pg_url: str) -> Iterator[AsyncEngine]:
    """Session-scoped async engine.

    ``NullPool`` keeps no connection alive between tests, so nothing is
    shared across the per-test event loops.
    """
    engine = create_async_engine(pg_url, poolclass=pool.NullPool)
    yield engine
    engine.sync_engine.dispose()


# ---------------------------------------------------------------------------
# Function-scoped: DB session with savepoint rollback for test isolation
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLAlchemy session; all changes rolled back after the test.

    Uses ``join_transaction_mode="create_savepoint"`` so that session.commit()
    inside tested code only releases a savepoint, while the outer transaction
    is rolled back at teardown -- giving each test a clean database state.
    ``expire_on_commit=False`` matches the application's session factory.
    """
    async with async_engine.connect() as conn:
        await conn.begin()
        session = AsyncSession(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
        yield session
        await session.close()
        await conn.rollback()
