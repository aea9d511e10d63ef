"""Artifact version chain and suggestions.

An artifact is identified by ``(id, version)``.  Versions are append-only
and numbered 1, 2, 3, ... per artifact; the only removal is trimming every
version after a given one (undo), which also drops suggestions made against
the trimmed versions.  Artifacts belong to the user who created them; other
users get ``NotFoundError``.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from tavern.api.db.engine import transaction
from tavern.api.db.tables import Artifact, ArtifactSuggestion, new_id
from tavern.api.errors import BadRequestError, NotFoundError
from tavern.api.managers.chats import get_chat
from tavern.api.models.api import ArtifactCreate, SuggestionCreate
from tavern.api.models.enums import ArtifactKind
from tavern.api.pagination import Page, PageParams, VersionPageParams, paginate


async def _latest(db: AsyncSession, artifact_id: str) -> Artifact | None:
    return (
        await db.execute(
            select(Artifact).where(Artifact.id == artifact_id).order_by(Artifact.version.desc()).limit(1)
        )
    ).scalar_one_or_none()


async def _owned_latest(db: AsyncSession, artifact_id: str, user_id: str) -> Artifact:
    artifact = await _latest(db, artifact_id)
    if artifact is None or artifact.user_id != user_id:
        raise NotFoundError(f"Artifact with id {artifact_id} not found")
    return artifact


async def list_by_chat(db: AsyncSession, chat_id: str, user_id: str, params: PageParams) -> Page[Artifact]:
    """Latest version of every artifact in the chat, paged by artifact id."""
    await get_chat(db, chat_id, user_id)
    latest = (
        select(Artifact)
        .where(Artifact.chat_id == chat_id)
        .distinct(Artifact.id)
        .order_by(Artifact.id, Artifact.version.desc())
        .subquery()
    )
    latest_artifact = aliased(Artifact, latest)
    return await paginate(db, select(latest_artifact), key=latest_artifact.id, params=params)


async def list_versions(db: AsyncSession, artifact_id: str, user_id: str, params: VersionPageParams) -> Page[Artifact]:
    await _owned_latest(db, artifact_id, user_id)
    return await paginate(db, select(Artifact).where(Artifact.id == artifact_id), key=Artifact.version, params=params)


async def get_artifact(db: AsyncSession, artifact_id: str, user_id: str, version: int | None = None) -> Artifact:
    """Return the given version, or the latest one when *version* is ``None``."""
    latest = await _owned_latest(db, artifact_id, user_id)
    if version is None or version == latest.version:
        return latest
    artifact = await db.get(Artifact, (artifact_id, version))
    if artifact is None:
        raise NotFoundError(f"Artifact version {version} not found for artifact {artifact_id}")
    return artifact


async def create_version(db: AsyncSession, user_id: str, body: ArtifactCreate) -> Artifact:
    """Append a version to ``body.id``, or start a new artifact at version 1.

    Two concurrent writers may both pick the same next version; the loser
    fails with ``BadRequestError`` and can simply retry.
    """
    try:
        async with transaction(db):
            latest = await _latest(db, body.id) if body.id else None
            if latest is not None:
                if latest.user_id != user_id:
                    raise NotFoundError(f"Artifact with id {body.id} not found")
                if body.chat_id is not None and body.chat_id != latest.chat_id:
                    raise BadRequestError("An artifact cannot move to another chat")
                artifact_id, chat_id, version = latest.id, latest.chat_id, latest.version + 1
            else:
                if body.chat_id is None:
                    raise BadRequestError("chat_id is required to create an artifact")
                await get_chat(db, body.chat_id, user_id)
                artifact_id, chat_id, version = body.id or new_id("artifact"), body.chat_id, 1

            artifact = Artifact(
                id=artifact_id,
                version=version,
                chat_id=chat_id,
                user_id=user_id,
                title=body.title,
                kind=body.kind or (latest.kind if latest is not None else ArtifactKind.TEXT),
                content=body.content,
            )
            db.add(artifact)
            await db.flush()
    except IntegrityError:
        msg = "Artifact was modified concurrently, please retry"
        raise BadRequestError(msg) from None
    await db.refresh(artifact)
    return artifact


async def delete_versions_after(db: AsyncSession, artifact_id: str, user_id: str, after: int) -> int:
    """Drop every version newer than *after* with its suggestions.  Returns versions removed."""
    async with transaction(db):
        await _owned_latest(db, artifact_id, user_id)
        await db.execute(
            delete(ArtifactSuggestion).where(
                ArtifactSuggestion.artifact_id == artifact_id,
                ArtifactSuggestion.artifact_version > after,
            )
        )
        result = await db.execute(delete(Artifact).where(Artifact.id == artifact_id, Artifact.version > after))
    logger.debug("Trimmed {} versions of artifact {} after {}", result.rowcount, artifact_id, after)
    return result.rowcount


# -- Suggestions ---------------------------------------------------------------


async def create_suggestion(
    db: AsyncSession, artifact_id: str, user_id: str, body: SuggestionCreate
) -> ArtifactSuggestion:
    async with transaction(db):
        artifact = await get_artifact(db, artifact_id, user_id, body.artifact_version)
        suggestion = ArtifactSuggestion(
            artifact_id=artifact.id,
            artifact_version=artifact.version,
            user_id=user_id,
            original_text=body.original_text,
            suggested_text=body.suggested_text,
            description=body.description,
        )
        db.add(suggestion)
        await db.flush()
    await db.refresh(suggestion)
    return suggestion


async def list_suggestions(
    db: AsyncSession,
    artifact_id: str,
    user_id: str,
    params: PageParams,
    *,
    version: int | None = None,
) -> Page[ArtifactSuggestion]:
    await _owned_latest(db, artifact_id, user_id)
    stmt = select(ArtifactSuggestion).where(ArtifactSuggestion.artifact_id == artifact_id)
    if version is not None:
        stmt = stmt.where(ArtifactSuggestion.artifact_version == version)
    return await paginate(db, stmt, key=ArtifactSuggestion.id, params=params)

