"""Integration tests for chats, messages, votes, artifacts and suggestions."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.integration

Headers = Callable[..., dict[str, str]]


@pytest.fixture
async def chat_id(
    client: AsyncClient,
    as_user: Headers,
    new_workspace: Callable[..., Awaitable[str]],
    new_app: Callable[..., Awaitable[dict]],
) -> str:
    """A chat between alice and a fresh app."""
    ws_id = await new_workspace("alice")
    app_id = (await new_app("alice", ws_id))["app"]["id"]
    resp = await client.post("/api/chats/create", json={"app_id": app_id, "title": "Hello"}, headers=as_user("alice"))
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _text(value: str) -> list[dict[str, str]]:
    return [{"type": "text", "text": value}]


# ---------------------------------------------------------------------------
# Chats
# ---------------------------------------------------------------------------


async def test_chat_crud(client: AsyncClient, as_user: Headers, chat_id: str) -> None:
    headers = as_user("alice")

    resp = await client.get(f"/api/chats/{chat_id}/get", headers=headers)
    assert resp.status_code == 200
    chat = resp.json()
    assert chat_id.startswith("chat_")
    assert chat["user_id"] == "alice"
    assert chat["title"] == "Hello"

    resp = await client.get(f"/api/chats/list?app_id={chat['app_id']}", headers=headers)
    assert [c["id"] for c in resp.json()["items"]] == [chat_id]

    resp = await client.post(f"/api/chats/{chat_id}/update", json={"metadata": {"pinned": True}}, headers=headers)
    assert resp.json()["metadata"] == {"pinned": True}
    resp = await client.post(
        f"/api/chats/{chat_id}/update", json={"title": "Renamed", "metadata": {"model": "x"}}, headers=headers
    )
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["metadata"] == {"pinned": True, "model": "x"}


async def test_chats_are_private(client: AsyncClient, as_user: Headers, chat_id: str) -> None:
    other = as_user("bob")

    resp = await client.get(f"/api/chats/{chat_id}/get", headers=other)
    assert resp.status_code == 404
    assert resp.json()["message"] == f"Chat with id {chat_id} not found"

    resp = await client.post(
        f"/api/chats/{chat_id}/messages/create", json={"role": "user", "content": _text("hi")}, headers=other
    )
    assert resp.status_code == 404


async def test_chat_for_missing_app(client: AsyncClient, as_user: Headers) -> None:
    resp = await client.post("/api/chats/create", json={"app_id": "app_missing"}, headers=as_user("alice"))
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


async def test_messages_vote_and_delete_trailing(client: AsyncClient, as_user: Headers, chat_id: str) -> None:
    headers = as_user("alice")

    ids = []
    for role, text in (("user", "question"), ("assistant", "answer"), ("user", "follow-up")):
        resp = await client.post(
            f"/api/chats/{chat_id}/messages/create", json={"role": role, "content": _text(text)}, headers=headers
        )
        assert resp.status_code == 201
        ids.append(resp.json()["id"])

    resp = await client.get(f"/api/chats/{chat_id}/messages/list", headers=headers)
    assert [m["id"] for m in resp.json()["items"]] == ids[::-1]

    resp = await client.get(f"/api/chats/messages/{ids[1]}/get", headers=headers)
    assert resp.json()["content"] == _text("answer")
    assert resp.json()["role"] == "assistant"

    # Voting twice flips the same vote.
    resp = await client.post(f"/api/chats/messages/{ids[1]}/vote", json={"is_upvoted": True}, headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"chat_id": chat_id, "message_id": ids[1], "user_id": "alice", "is_upvoted": True}
    resp = await client.post(f"/api/chats/messages/{ids[1]}/vote", json={"is_upvoted": False}, headers=headers)
    assert resp.json()["is_upvoted"] is False

    # Edit-and-regenerate: drop the answer and everything after it.
    resp = await client.post(f"/api/chats/messages/{ids[1]}/delete-trailing", headers=headers)
    assert resp.json() == {"deleted": 2}

    resp = await client.get(f"/api/chats/{chat_id}/messages/list", headers=headers)
    assert [m["id"] for m in resp.json()["items"]] == [ids[0]]
    resp = await client.get(f"/api/chats/messages/{ids[1]}/get", headers=headers)
    assert resp.status_code == 404

async def test_delete_trailing_keeps_earlier_burst_messages(
    client: AsyncClient, as_user: Headers, chat_id: str
) -> None:
    headers = as_user("alice")
    ids = []
    for i in range(8):
        resp = await client.post(
            f"/api/chats/{chat_id}/messages/create", json={"role": "user", "content": _text(f"m{i}")}, headers=headers
        )
        ids.append(resp.json()["id"])

    resp = await client.post(f"/api/chats/messages/{ids[3]}/delete-trailing", headers=headers)
    assert resp.json() == {"deleted": 5}

    resp = await client.get(f"/api/chats/{chat_id}/messages/list", headers=headers)
    assert [m["content"][0]["text"] for m in resp.json()["items"]] == ["m2", "m1", "m0"]



async def test_message_needs_content(client: AsyncClient, as_user: Headers, chat_id: str) -> None:
    resp = await client.post(
        f"/api/chats/{chat_id}/messages/create", json={"role": "user", "content": []}, headers=as_user("alice")
    )
    assert resp.status_code == 400

    resp = await client.post(
        f"/api/chats/{chat_id}/messages/create",
        json={"role": "robot", "content": _text("x")},
        headers=as_user("alice"),
    )
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


async def test_artifact_version_chain(client: AsyncClient, as_user: Headers, chat_id: str) -> None:
    headers = as_user("alice")

    resp = await client.post(
        "/api/artifacts/create",
        json={"chat_id": chat_id, "title": "Script", "kind": "code", "content": "print(1)"},
        headers=headers,
    )
    assert resp.status_code == 201
    first = resp.json()
    artifact_id = first["id"]
    assert artifact_id.startswith("artifact_")
    assert first["version"] == 1

    # Appending keeps the chat and inherits the kind.
    resp = await client.post(
        "/api/artifacts/create", json={"id": artifact_id, "title": "Script", "content": "print(2)"}, headers=headers
    )
    second = resp.json()
    assert second["version"] == 2
    assert second["kind"] == "code"
    assert second["chat_id"] == chat_id

    resp = await client.post(
        "/api/artifacts/create",
        json={"id": artifact_id, "title": "Notes", "kind": "text", "content": "done"},
        headers=headers,
    )
    assert resp.json()["version"] == 3

    resp = await client.get(f"/api/artifacts/{artifact_id}/get", headers=headers)
    assert resp.json()["version"] == 3
    assert resp.json()["kind"] == "text"
    resp = await client.get(f"/api/artifacts/{artifact_id}/get?version=1", headers=headers)
    assert resp.json()["content"] == "print(1)"
    resp = await client.get(f"/api/artifacts/{artifact_id}/get?version=9", headers=headers)
    assert resp.status_code == 404

    resp = await client.get(f"/api/artifacts/{artifact_id}/versions/list", headers=headers)
    assert [a["version"] for a in resp.json()["items"]] == [3, 2, 1]


async def test_artifact_list_shows_latest_per_artifact(client: AsyncClient, as_user: Headers, chat_id: str) -> None:
    headers = as_user("alice")

    resp = await client.post("/api/artifacts/create", json={"chat_id": chat_id, "title": "A"}, headers=headers)
    a_id = resp.json()["id"]
    assert resp.json()["kind"] == "text"
    await client.post("/api/artifacts/create", json={"id": a_id, "title": "A2"}, headers=headers)
    resp = await client.post("/api/artifacts/create", json={"chat_id": chat_id, "title": "B"}, headers=headers)
    b_id = resp.json()["id"]

    resp = await client.get(f"/api/artifacts/list?chat_id={chat_id}", headers=headers)
    items = resp.json()["items"]
    assert [(a["id"], a["version"], a["title"]) for a in items] == [(b_id, 1, "B"), (a_id, 2, "A2")]


async def test_artifact_undo_trims_versions_and_suggestions(
    client: AsyncClient, as_user: Headers, chat_id: str
) -> None:
    headers = as_user("alice")
    resp = await client.post(
        "/api/artifacts/create", json={"chat_id": chat_id, "title": "Doc", "content": "one"}, headers=headers
    )
    artifact_id = resp.json()["id"]
    for content in ("two", "three"):
        await client.post(
            "/api/artifacts/create", json={"id": artifact_id, "title": "Doc", "content": content}, headers=headers
        )

    resp = await client.post(
        f"/api/artifacts/{artifact_id}/suggestions/create",
        json={"original_text": "three", "suggested_text": "3"},
        headers=headers,
    )
    assert resp.status_code == 201
    assert resp.json()["artifact_version"] == 3
    assert resp.json()["is_resolved"] is False

    resp = await client.post(
        f"/api/artifacts/{artifact_id}/suggestions/create",
        json={"artifact_version": 1, "original_text": "one", "suggested_text": "1", "description": "digits"},
        headers=headers,
    )
    kept = resp.json()["id"]

    resp = await client.get(f"/api/artifacts/{artifact_id}/suggestions/list", headers=headers)
    assert len(resp.json()["items"]) == 2
    resp = await client.get(f"/api/artifacts/{artifact_id}/suggestions/list?version=1", headers=headers)
    assert [s["id"] for s in resp.json()["items"]] == [kept]

    resp = await client.post(f"/api/artifacts/{artifact_id}/versions/delete-after", json={"after": 1}, headers=headers)
    assert resp.json() == {"deleted": 2}

    resp = await client.get(f"/api/artifacts/{artifact_id}/get", headers=headers)
    assert resp.json()["version"] == 1
    assert resp.json()["content"] == "one"
    resp = await client.get(f"/api/artifacts/{artifact_id}/suggestions/list", headers=headers)
    assert [s["id"] for s in resp.json()["items"]] == [kept]

    # The chain continues from the surviving version.
    resp = await client.post(
        "/api/artifacts/create", json={"id": artifact_id, "title": "Doc", "content": "again"}, headers=headers
    )
    assert resp.json()["version"] == 2

    resp = await client.post(f"/api/artifacts/{artifact_id}/versions/delete-after", json={"after": 0}, headers=headers)
    assert resp.status_code == 400


async def test_artifact_rules(client: AsyncClient, as_user: Headers, chat_id: str) -> None:
    headers = as_user("alice")

    resp = await client.post("/api/artifacts/create", json={"title": "Orphan"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "chat_id is required to create an artifact"

    resp = await client.post("/api/artifacts/create", json={"chat_id": "chat_missing", "title": "X"}, headers=headers)
    assert resp.status_code == 404

    resp = await client.post("/api/artifacts/create", json={"chat_id": chat_id, "title": "Mine"}, headers=headers)
    artifact_id = resp.json()["id"]

    resp = await client.post(
        "/api/artifacts/create", json={"id": artifact_id, "chat_id": "chat_other", "title": "Moved"}, headers=headers
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "An artifact cannot move to another chat"

    # Another user can neither read nor extend it.
    other = as_user("bob")
    resp = await client.get(f"/api/artifacts/{artifact_id}/get", headers=other)
    assert resp.status_code == 404
    resp = await client.post("/api/artifacts/create", json={"id": artifact_id, "title": "Hijack"}, headers=other)
    assert resp.status_code == 404
    resp = await client.get(f"/api/artifacts/list?chat_id={chat_id}", headers=other)
    assert resp.status_code == 404


async def test_client_chosen_artifact_id(client: AsyncClient, as_user: Headers, chat_id: str) -> None:
    resp = await client.post(
        "/api/artifacts/create",
        json={"id": "artifact_client_side", "chat_id": chat_id, "title": "Sheet", "kind": "sheet"},
        headers=as_user("alice"),
    )
    assert resp.status_code == 201
    assert resp.json()["id"] == "artifact_client_side"
    assert resp.json()["version"] == 1
