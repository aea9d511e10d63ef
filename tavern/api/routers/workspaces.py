"""Workspace and membership endpoints (RPC-style).

All write operations use POST; reads use GET.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from tavern.api.deps import CurrentUser, DbSession, Paging, QuotaGuard
from tavern.api.managers import workspaces
from tavern.api.models.api import (
    MemberAdd,
    MemberResponse,
    PageResponse,
    TransferOwner,
    WorkspaceCreate,
    WorkspaceResponse,
    WorkspaceUpdate,
    WorkspaceWithRole,
)

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.get("/list", response_model=PageResponse[WorkspaceWithRole])
async def list_workspaces(caller: CurrentUser, guard: QuotaGuard, page: Paging, db: DbSession):
    """List the caller's workspaces, newest first.  Creates a personal one on first use."""
    return await workspaces.list_workspaces(db, guard, caller.user_id, page)


@router.get("/{workspace_id}/get", response_model=WorkspaceWithRole)
async def get_workspace(workspace_id: str, caller: CurrentUser, db: DbSession):
    return await workspaces.get_workspace(db, workspace_id, caller.user_id)


@router.post("/create", response_model=WorkspaceWithRole, status_code=status.HTTP_201_CREATED)
async def create_workspace(body: WorkspaceCreate, caller: CurrentUser, guard: QuotaGuard, db: DbSession):
    return await workspaces.create_workspace(db, guard, caller.user_id, body)


@router.post("/{workspace_id}/update", response_model=WorkspaceResponse)
async def update_workspace(workspace_id: str, body: WorkspaceUpdate, caller: CurrentUser, db: DbSession):
    """Rename a workspace.  Owner only."""
    return await workspaces.update_workspace(db, workspace_id, caller.user_id, body)


@router.post("/{workspace_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace(workspace_id: str, caller: CurrentUser, db: DbSession) -> None:
    """Delete a workspace with its apps, datasets and memberships.  Owner only."""
    await workspaces.delete_workspace(db, workspace_id, caller.user_id)


# -- Members -------------------------------------------------------------------


@router.get("/{workspace_id}/members/list", response_model=PageResponse[MemberResponse])
async def list_members(workspace_id: str, caller: CurrentUser, page: Paging, db: DbSession):
    return await workspaces.list_members(db, workspace_id, caller.user_id, page)


@router.get("/{workspace_id}/members/{user_id}/get", response_model=MemberResponse)
async def get_member(workspace_id: str, user_id: str, caller: CurrentUser, db: DbSession):
    return await workspaces.get_member(db, workspace_id, caller.user_id, user_id)


@router.post("/{workspace_id}/members/add", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(workspace_id: str, body: MemberAdd, caller: CurrentUser, guard: QuotaGuard, db: DbSession):
    return await workspaces.add_member(db, guard, workspace_id, caller.user_id, body)


@router.post("/{workspace_id}/members/{user_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_member(workspace_id: str, user_id: str, caller: CurrentUser, db: DbSession) -> None:
    await workspaces.delete_member(db, workspace_id, caller.user_id, user_id)


@router.post("/{workspace_id}/transfer-owner", status_code=status.HTTP_204_NO_CONTENT)
async def transfer_owner(workspace_id: str, body: TransferOwner, caller: CurrentUser, db: DbSession) -> None:
    """Make an existing member the owner; the caller becomes a plain member."""
    await workspaces.transfer_owner(db, workspace_id, caller.user_id, body.user_id)
