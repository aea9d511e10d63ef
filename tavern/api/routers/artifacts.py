"""Artifact and suggestion endpoints (RPC-style)."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status

from tavern.api.deps import CurrentUser, DbSession, Paging, VersionPaging
from tavern.api.managers import artifacts
from tavern.api.models.api import (
    ArtifactCreate,
    ArtifactResponse,
    DeletedResponse,
    DeleteVersionsAfter,
    PageResponse,
    SuggestionCreate,
    SuggestionResponse,
)

router = APIRouter(prefix="/artifacts", tags=["artifacts"])


@router.get("/list", response_model=PageResponse[ArtifactResponse])
async def list_artifacts(chat_id: str, caller: CurrentUser, page: Paging, db: DbSession):
    """List the latest version of each artifact in a chat."""
    return await artifacts.list_by_chat(db, chat_id, caller.user_id, page)


@router.get("/{artifact_id}/get", response_model=ArtifactResponse)
async def get_artifact(
    artifact_id: str,
    caller: CurrentUser,
    db: DbSession,
    version: Annotated[int | None, Query(ge=1, description="Defaults to the latest version.")] = None,
):
    return await artifacts.get_artifact(db, artifact_id, caller.user_id, version)


@router.get("/{artifact_id}/versions/list", response_model=PageResponse[ArtifactResponse])
async def list_artifact_versions(artifact_id: str, caller: CurrentUser, page: VersionPaging, db: DbSession):
    return await artifacts.list_versions(db, artifact_id, caller.user_id, page)


@router.post("/create", response_model=ArtifactResponse, status_code=status.HTTP_201_CREATED)
async def create_artifact(body: ArtifactCreate, caller: CurrentUser, db: DbSession):
    """Create an artifact, or append a new version when ``id`` is an existing artifact."""
    return await artifacts.create_version(db, caller.user_id, body)


@router.post("/{artifact_id}/versions/delete-after", response_model=DeletedResponse)
async def delete_versions_after(artifact_id: str, body: DeleteVersionsAfter, caller: CurrentUser, db: DbSession):
    """Trim every version newer than ``after`` together with its suggestions."""
    return {"deleted": await artifacts.delete_versions_after(db, artifact_id, caller.user_id, body.after)}


@router.get("/{artifact_id}/suggestions/list", response_model=PageResponse[SuggestionResponse])
async def list_suggestions(
    artifact_id: str,
    caller: CurrentUser,
    page: Paging,
    db: DbSession,
    version: Annotated[int | None, Query(ge=1)] = None,
):
    return await artifacts.list_suggestions(db, artifact_id, caller.user_id, page, version=version)


@router.post(
    "/{artifact_id}/suggestions/create",
    response_model=SuggestionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_suggestion(artifact_id: str, body: SuggestionCreate, caller: CurrentUser, db: DbSession):
    return await artifacts.create_suggestion(db, artifact_id, caller.user_id, body)
