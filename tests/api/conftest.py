"""Shared fixtures for API tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tavern.api.app import app
from tavern.api.deps import get_db
from tavern.api.settings import _get_settings_cached

ADMIN_ORG = "org_admins"


@pytest.fixture(autouse=True)
def _settings_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """No gateway token, a known admin org, default quotas."""
    for key in (
        "TAVERN_AUTH_TOKEN",
        "TAVERN_MAX_WORKSPACES_PER_USER",
        "TAVERN_MAX_MEMBERS_PER_WORKSPACE",
        "TAVERN_MAX_APPS_PER_WORKSPACE",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("TAVERN_ADMIN_ORG_ID", ADMIN_ORG)
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with a test DB session.

    Overrides ``get_db`` so every request uses the savepoint-isolated
    ``db_session`` fixture from the root conftest.  The app lifespan does
    NOT run under ``ASGITransport``, so state fields are pre-set to None.
    """

    async def _override_get_db() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.state.db_engine = None
    app.state.db_session_factory = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def nodb_client() -> AsyncIterator[AsyncClient]:
    """Client for request-level checks that fail before any query runs.

    ``get_db`` yields ``None``, so auth, validation and routing can be
    exercised without a database.
    """

    async def _no_db() -> AsyncIterator[None]:
        yield None

    app.dependency_overrides[get_db] = _no_db
    app.state.db_engine = None
    app.state.db_session_factory = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()



# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def as_user() -> Callable[..., dict[str, str]]:
    """Build the identity headers the gateway forwards for a user."""

    def _headers(user_id: str, *, admin: bool = False) -> dict[str, str]:
        headers = {"X-User-Id": user_id}
        if admin:
            headers.update({"X-Org-Id": ADMIN_ORG, "X-Org-Role": "org:admin"})
        return headers

    return _headers


@pytest.fixture
def new_workspace(client: AsyncClient, as_user: Callable[..., dict[str, str]]) -> Callable[..., Awaitable[str]]:
    """Create a workspace owned by *user_id* and return its id."""

    async def _create(user_id: str, name: str = "Team") -> str:
        resp = await client.post("/api/workspaces/create", json={"name": name}, headers=as_user(user_id))
        assert resp.status_code == 201, resp.text
        return resp.json()["workspace"]["id"]

    return _create


@pytest.fixture
def new_app(client: AsyncClient, as_user: Callable[..., dict[str, str]]) -> Callable[..., Awaitable[dict]]:
    """Create an app and return the ``{"app", "draft"}`` response body."""

    async def _create(user_id: str, workspace_id: str, name: str = "Helper", **extra: object) -> dict:
        resp = await client.post(
            "/api/apps/create",
            json={"workspace_id": workspace_id, "name": name, **extra},
            headers=as_user(user_id),
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create
