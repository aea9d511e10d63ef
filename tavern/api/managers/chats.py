"""Chat, message and vote operations.

Chats are private to the user who started them.  Messages are ordered by
their time-sortable id, which is also their pagination key.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tavern.api.db.engine import transaction
from tavern.api.db.tables import App, Chat, Message, MessageVote
from tavern.api.errors import NotFoundError
from tavern.api.models.api import ChatCreate, ChatUpdate, MessageCreate
from tavern.api.models.metadata import merge_metadata
from tavern.api.pagination import Page, PageParams, paginate


async def get_chat(db: AsyncSession, chat_id: str, user_id: str) -> Chat:
    """Return the chat.  Chats of other users look the same as missing ones."""
    chat = await db.get(Chat, chat_id)
    if chat is None or chat.user_id != user_id:
        raise NotFoundError(f"Chat with id {chat_id} not found")
    return chat


async def get_message(db: AsyncSession, message_id: str, user_id: str) -> Message:
    message = await db.get(Message, message_id)
    if message is None:
        raise NotFoundError(f"Message with id {message_id} not found")
    await get_chat(db, message.chat_id, user_id)
    return message


async def list_chats(db: AsyncSession, app_id: str, user_id: str, params: PageParams) -> Page[Chat]:
    stmt = select(Chat).where(Chat.app_id == app_id, Chat.user_id == user_id)
    return await paginate(db, stmt, key=Chat.id, params=params)


async def create_chat(db: AsyncSession, user_id: str, body: ChatCreate) -> Chat:
    async with transaction(db):
        if await db.get(App, body.app_id) is None:
            raise NotFoundError(f"App with id {body.app_id} not found")
        chat = Chat(app_id=body.app_id, user_id=user_id, title=body.title, metadata_=body.metadata)
        db.add(chat)
        await db.flush()
    await db.refresh(chat)
    return chat


async def update_chat(db: AsyncSession, chat_id: str, user_id: str, body: ChatUpdate) -> Chat:
    changes = body.model_dump(exclude_unset=True)
    async with transaction(db):
        chat = await get_chat(db, chat_id, user_id)
        if "title" in changes:
            chat.title = changes["title"]
        if "metadata" in changes:
            chat.metadata_ = merge_metadata(chat.metadata_, changes["metadata"])
    await db.refresh(chat)
    return chat


async def list_messages(db: AsyncSession, chat_id: str, user_id: str, params: PageParams) -> Page[Message]:
    await get_chat(db, chat_id, user_id)
    return await paginate(db, select(Message).where(Message.chat_id == chat_id), key=Message.id, params=params)


async def create_message(db: AsyncSession, chat_id: str, user_id: str, body: MessageCreate) -> Message:
    async with transaction(db):
        await get_chat(db, chat_id, user_id)
        message = Message(chat_id=chat_id, role=body.role, content=body.content)
        db.add(message)
        await db.flush()
    await db.refresh(message)
    return message


async def delete_trailing_messages(db: AsyncSession, message_id: str, user_id: str) -> int:
    """Delete *message_id* and every later message of its chat (edit and regenerate).

    Returns the number of deleted messages.  Their votes go with them.
    """
    async with transaction(db):
        message = await get_message(db, message_id, user_id)
        result = await db.execute(
            delete(Message).where(Message.chat_id == message.chat_id, Message.id >= message.id)
        )
    return result.rowcount


async def vote_message(db: AsyncSession, message_id: str, user_id: str, is_upvoted: bool) -> MessageVote:
    """Create or flip the caller's vote on a message."""
    async with transaction(db):
        message = await get_message(db, message_id, user_id)
        stmt = (
            pg_insert(MessageVote)
            .values(chat_id=message.chat_id, message_id=message.id, user_id=user_id, is_upvoted=is_upvoted)
            .on_conflict_do_update(
                index_elements=[MessageVote.chat_id, MessageVote.message_id, MessageVote.user_id],
                set_={"is_upvoted": is_upvoted},
            )
            .returning(MessageVote)
        )
        vote = (await db.execute(stmt, execution_options={"populate_existing": True})).scalars().one()
    return vote
