"""Integration smoke tests for the database fixtures.

Verifies the testcontainers + Alembic migration + savepoint rollback
pipeline works end-to-end.
"""

from __future__ import annotations

import pytest
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from tavern.api.db.tables import Base, Workspace

pytestmark = pytest.mark.integration


async def test_alembic_migrations_applied(db_session: AsyncSession):
    """Every mapped table exists after the initial migration."""
    result = await db_session.execute(
        text("SELECT table_name FROM information_schema.tables WHERE table_schema = 'public' ORDER BY table_name")
    )
    tables = {row[0] for row in result}
    assert set(Base.metadata.tables) <= tables
    assert "alembic_version" in tables


async def test_savepoint_rollback_isolation(db_session: AsyncSession):
    """Rows inserted in a test should not persist to the next test."""
    db_session.add(Workspace(id="ws_isolation_probe", name="Probe"))
    await db_session.commit()  # commits savepoint, not the real txn

    result = await db_session.execute(select(Workspace).where(Workspace.id == "ws_isolation_probe"))
    assert result.scalar_one().name == "Probe"


async def test_savepoint_rollback_clean_state(db_session: AsyncSession):
    """Previous test's data should have been rolled back."""
    result = await db_session.execute(select(Workspace).where(Workspace.id == "ws_isolation_probe"))
    assert result.scalar_one_or_none() is None, "Savepoint rollback did not clean up previous test's data"


async def test_deleting_an_app_cascades_to_suggestions(db_session: AsyncSession):
    """Chats, artifacts and suggestions go with their app."""
    statements = [
        "INSERT INTO workspaces (id, name) VALUES ('ws_c', 'W')",
        "INSERT INTO apps (id, workspace_id, type, name) VALUES ('app_c', 'ws_c', 'single-agent', 'A')",
        "INSERT INTO chats (id, app_id, user_id) VALUES ('chat_c', 'app_c', 'u1')",
        "INSERT INTO artifacts (id, version, chat_id, user_id, title, kind)"
        " VALUES ('artifact_c', 1, 'chat_c', 'u1', 'T', 'text')",
        "INSERT INTO artifact_suggestions"
        " (id, artifact_id, artifact_version, user_id, original_text, suggested_text)"
        " VALUES ('sugg_c', 'artifact_c', 1, 'u1', 'a', 'b')",
    ]
    for statement in statements:
        await db_session.execute(text(statement))
    await db_session.execute(text("DELETE FROM apps WHERE id = 'app_c'"))

    remaining = await db_session.scalar(text("SELECT count(*) FROM artifact_suggestions WHERE id = 'sugg_c'"))
    assert remaining == 0
