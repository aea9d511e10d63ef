"""Chat and message endpoints (RPC-style).

Chats are only visible to the user who created them.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from tavern.api.deps import CurrentUser, DbSession, Paging
from tavern.api.managers import chats
from tavern.api.models.api import (
    ChatCreate,
    ChatResponse,
    ChatUpdate,
    DeletedResponse,
    MessageCreate,
    MessageResponse,
    PageResponse,
    VoteCreate,
    VoteResponse,
)

router = APIRouter(prefix="/chats", tags=["chats"])


@router.get("/list", response_model=PageResponse[ChatResponse])
async def list_chats(app_id: str, caller: CurrentUser, page: Paging, db: DbSession):
    """List the caller's chats with an app, newest first."""
    return await chats.list_chats(db, app_id, caller.user_id, page)


@router.get("/{chat_id}/get", response_model=ChatResponse)
async def get_chat(chat_id: str, caller: CurrentUser, db: DbSession):
    return await chats.get_chat(db, chat_id, caller.user_id)


@router.post("/create", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
async def create_chat(body: ChatCreate, caller: CurrentUser, db: DbSession):
    return await chats.create_chat(db, caller.user_id, body)


@router.post("/{chat_id}/update", response_model=ChatResponse)
async def update_chat(chat_id: str, body: ChatUpdate, caller: CurrentUser, db: DbSession):
    return await chats.update_chat(db, chat_id, caller.user_id, body)


# -- Messages ------------------------------------------------------------------


@router.get("/{chat_id}/messages/list", response_model=PageResponse[MessageResponse])
async def list_messages(chat_id: str, caller: CurrentUser, page: Paging, db: DbSession):
    return await chats.list_messages(db, chat_id, caller.user_id, page)


@router.post("/{chat_id}/messages/create", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_message(chat_id: str, body: MessageCreate, caller: CurrentUser, db: DbSession):
    return await chats.create_message(db, chat_id, caller.user_id, body)


@router.get("/messages/{message_id}/get", response_model=MessageResponse)
async def get_message(message_id: str, caller: CurrentUser, db: DbSession):
    return await chats.get_message(db, message_id, caller.user_id)


@router.post("/messages/{message_id}/delete-trailing", response_model=DeletedResponse)
async def delete_trailing_messages(message_id: str, caller: CurrentUser, db: DbSession):
    """Delete the message and everything after it in the same chat."""
    return {"deleted": await chats.delete_trailing_messages(db, message_id, caller.user_id)}


@router.post("/messages/{message_id}/vote", response_model=VoteResponse)
async def vote_message(message_id: str, body: VoteCreate, caller: CurrentUser, db: DbSession):
    return await chats.vote_message(db, message_id, caller.user_id, body.is_upvoted)
