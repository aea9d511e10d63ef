"""Request-level behaviour that needs no database: auth, routing, error bodies."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from loguru import logger

from tavern.api.app import app
from tavern.api.error_handlers import register_error_handlers
from tavern.api.errors import ForbiddenError, InternalInconsistencyError, NotFoundError
from tavern.api.settings import _get_settings_cached

Headers = Callable[..., dict[str, str]]


async def test_health(nodb_client: AsyncClient) -> None:
    resp = await nodb_client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_request_id_is_echoed_or_minted(nodb_client: AsyncClient) -> None:
    resp = await nodb_client.get("/api/health", headers={"X-Request-Id": "req-42"})
    assert resp.headers["X-Request-Id"] == "req-42"

    resp = await nodb_client.get("/api/health", headers={"X-Request-Id": "x" * 200})
    minted = resp.headers["X-Request-Id"]
    assert len(minted) == 32
    int(minted, 16)


async def test_log_lines_carry_request_and_user(nodb_client: AsyncClient, as_user: Headers) -> None:
    records = []
    sink_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    try:
        await nodb_client.get("/api/health", headers={**as_user("u1"), "X-Request-Id": "req-7"})
    finally:
        logger.remove(sink_id)

    request_lines = [record for record in records if record["function"] == "log_requests"]
    assert request_lines
    assert request_lines[0]["extra"]["request_id"] == "req-7"
    assert request_lines[0]["extra"]["user_id"] == "u1"
    assert "-> 200" in request_lines[0]["message"]


async def test_missing_user_is_unauthorized(nodb_client: AsyncClient) -> None:
    resp = await nodb_client.get("/api/workspaces/list")
    assert resp.status_code == 401
    assert resp.json() == {"code": "UNAUTHORIZED", "message": "Unauthorized"}


async def test_gateway_token_enforced(
    nodb_client: AsyncClient, as_user: Headers, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("TAVERN_AUTH_TOKEN", "s3cret")
    _get_settings_cached.cache_clear()

    resp = await nodb_client.get("/api/workspaces/list", headers=as_user("u1"))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid or missing gateway token"

    resp = await nodb_client.get("/api/categories/list", headers={"Authorization": "Bearer wrong"})
    assert resp.status_code == 401


async def test_database_not_configured() -> None:
    app.state.db_engine = None
    app.state.db_session_factory = None
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/api/workspaces/list", headers={"X-User-Id": "u1"})
    assert resp.status_code == 503
    body = resp.json()
    assert body["code"] == "SERVICE_UNAVAILABLE"
    assert "TAVERN_DATABASE_URL" in body["message"]


async def test_unknown_route(nodb_client: AsyncClient) -> None:
    resp = await nodb_client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


async def test_wrong_method(nodb_client: AsyncClient, as_user: Headers) -> None:
    resp = await nodb_client.get("/api/apps/create", headers=as_user("u1"))
    assert resp.status_code == 405
    assert resp.json()["code"] == "METHOD_NOT_SUPPORTED"


async def test_invalid_body_is_bad_request(nodb_client: AsyncClient, as_user: Headers) -> None:
    resp = await nodb_client.post("/api/workspaces/create", json={"name": ""}, headers=as_user("u1"))
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "BAD_REQUEST"
    assert body["errors"][0]["loc"] == ["body", "name"]
    assert body["errors"][0]["type"] == "string_too_short"


@pytest.mark.parametrize("query", ["limit=0", "limit=101", "after=a&before=b"])
async def test_invalid_paging_is_bad_request(nodb_client: AsyncClient, as_user: Headers, query: str) -> None:
    resp = await nodb_client.get(f"/api/chats/list?app_id=app_1&{query}", headers=as_user("u1"))
    assert resp.status_code == 400
    assert resp.json()["code"] == "BAD_REQUEST"


async def test_both_cursors_message(nodb_client: AsyncClient, as_user: Headers) -> None:
    resp = await nodb_client.get("/api/chats/list?app_id=app_1&after=a&before=b", headers=as_user("u1"))
    assert resp.json()["message"] == "Value error, Cannot use both after and before cursors"


async def test_invalid_version_selector(nodb_client: AsyncClient, as_user: Headers) -> None:
    resp = await nodb_client.get("/api/apps/app_1/versions/get?version=newest", headers=as_user("u1"))
    assert resp.status_code == 400
    assert "expected a number" in resp.json()["message"]


async def test_list_by_tags_needs_a_tag(nodb_client: AsyncClient, as_user: Headers) -> None:
    resp = await nodb_client.get("/api/apps/list-by-tags?workspace_id=ws_1", headers=as_user("u1"))
    assert resp.status_code == 400


async def test_category_create_is_admin_only(nodb_client: AsyncClient, as_user: Headers) -> None:
    resp = await nodb_client.post("/api/categories/create", json={"name": "Writing"}, headers=as_user("u1"))
    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN"


async def test_category_create_needs_a_user(nodb_client: AsyncClient) -> None:
    resp = await nodb_client.post("/api/categories/create", json={"name": "Writing"})
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Error handlers on a bare app
# ---------------------------------------------------------------------------


@pytest.fixture
async def failing_client() -> AsyncIterator[AsyncClient]:
    failing = FastAPI()
    register_error_handlers(failing)

    @failing.get("/missing")
    async def missing() -> None:
        raise NotFoundError("Thing with id t1 not found")

    @failing.get("/forbidden")
    async def forbidden() -> None:
        raise ForbiddenError()

    @failing.get("/inconsistent")
    async def inconsistent() -> None:
        raise InternalInconsistencyError("app app_1 has no draft version")

    @failing.get("/crash")
    async def crash() -> None:
        raise KeyError("secret detail")

    transport = ASGITransport(app=failing, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def test_domain_errors_keep_their_message(failing_client: AsyncClient) -> None:
    resp = await failing_client.get("/missing")
    assert resp.status_code == 404
    assert resp.json() == {"code": "NOT_FOUND", "message": "Thing with id t1 not found"}

    resp = await failing_client.get("/forbidden")
    assert resp.status_code == 403
    assert resp.json() == {"code": "FORBIDDEN", "message": "Forbidden"}


async def test_inconsistency_is_hidden(failing_client: AsyncClient) -> None:
    resp = await failing_client.get("/inconsistent")
    assert resp.status_code == 500
    assert resp.json() == {"code": "INTERNAL_SERVER_ERROR", "message": "Internal server error"}


async def test_unexpected_error_is_hidden(failing_client: AsyncClient) -> None:
    resp = await failing_client.get("/crash")
    assert resp.status_code == 500
    assert resp.json() == {"code": "INTERNAL_SERVER_ERROR", "message": "Internal server error"}
