"""Workspace and membership operations.

Every workspace has exactly one owner membership.  Creation inserts the
workspace and its owner row together; ownership transfer swaps roles in one
transaction.  Reads hide workspaces the caller does not belong to behind
``NotFoundError``; writes by non-owners fail with ``ForbiddenError``.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tavern.api.db.engine import transaction
from tavern.api.db.tables import App, Dataset, Membership, Workspace
from tavern.api.errors import BadRequestError, ForbiddenError, NotFoundError
from tavern.api.guard import Guard, verify_ownership
from tavern.api.managers.apps import app_store
from tavern.api.models.api import MemberAdd, WorkspaceCreate, WorkspaceUpdate
from tavern.api.models.enums import MembershipRole
from tavern.api.pagination import Page, PageParams, paginate

DEFAULT_WORKSPACE_NAME = "My workspace"


def _with_role(workspace: Workspace, role: str) -> dict[str, Any]:
    return {"workspace": workspace, "role": role}


async def _create_with_owner(db: AsyncSession, guard: Guard, user_id: str, name: str) -> Workspace:
    await guard.check_workspace_quota(db, user_id)
    workspace = Workspace(name=name)
    db.add(workspace)
    await db.flush()
    db.add(Membership(workspace_id=workspace.id, user_id=user_id, role=MembershipRole.OWNER))
    await db.flush()
    return workspace


async def list_workspaces(db: AsyncSession, guard: Guard, user_id: str, params: PageParams) -> Page[dict[str, Any]]:
    """List the caller's workspaces with their role, newest first.

    A user with no workspace at all gets a personal one created on the fly,
    so the first page is never empty.
    """
    stmt = (
        select(Workspace, Membership.role)
        .join(Membership, Membership.workspace_id == Workspace.id)
        .where(Membership.user_id == user_id)
    )
    async with transaction(db):
        page = await paginate(
            db,
            stmt,
            key=Workspace.id,
            params=params,
            cursor_of=lambda row: row.Workspace.id,
            scalars=False,
        )
        created = None
        if not page.items and params.after is None and params.before is None:
            created = await _create_with_owner(db, guard, user_id, DEFAULT_WORKSPACE_NAME)

    if created is not None:
        await db.refresh(created)
        logger.info("Created personal workspace {} for user {}", created.id, user_id)
        return Page(
            items=[_with_role(created, MembershipRole.OWNER)],
            has_more=False,
            first=created.id,
            last=created.id,
        )

    page.items = [_with_role(workspace, role) for workspace, role in page.items]
    return page


async def get_workspace(db: AsyncSession, workspace_id: str, user_id: str) -> dict[str, Any]:
    """Return the workspace and the caller's role.  Non-members see ``NotFoundError``."""
    row = (
        await db.execute(
            select(Workspace, Membership.role)
            .join(Membership, Membership.workspace_id == Workspace.id)
            .where(Workspace.id == workspace_id, Membership.user_id == user_id)
        )
    ).first()
    if row is None:
        raise NotFoundError("Workspace not found")
    return _with_role(row.Workspace, row.role)


async def create_workspace(db: AsyncSession, guard: Guard, user_id: str, body: WorkspaceCreate) -> dict[str, Any]:
    """Create a workspace owned by *user_id*.  Subject to the per-user quota."""
    async with transaction(db):
        workspace = await _create_with_owner(db, guard, user_id, body.name)
    await db.refresh(workspace)
    return _with_role(workspace, MembershipRole.OWNER)


async def update_workspace(db: AsyncSession, workspace_id: str, user_id: str, body: WorkspaceUpdate) -> Workspace:
    async with transaction(db):
        await verify_ownership(db, workspace_id, user_id)
        workspace = await db.get(Workspace, workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace not found")
        for key, value in body.model_dump(exclude_unset=True).items():
            setattr(workspace, key, value)
    await db.refresh(workspace)
    return workspace


async def delete_workspace(db: AsyncSession, workspace_id: str, user_id: str) -> None:
    """Delete a workspace with its apps, datasets and memberships.  Owner only."""
    async with transaction(db):
        await verify_ownership(db, workspace_id, user_id)
        app_ids = (await db.execute(select(App.id).where(App.workspace_id == workspace_id))).scalars().all()
        for app_id in app_ids:
            await app_store.delete(db, app_id)
        await db.execute(delete(Dataset).where(Dataset.workspace_id == workspace_id))
        await db.execute(delete(Membership).where(Membership.workspace_id == workspace_id))
        await db.execute(delete(Workspace).where(Workspace.id == workspace_id))
    logger.info("Deleted workspace {} ({} apps)", workspace_id, len(app_ids))


# -- Members -------------------------------------------------------------------


async def _require_member_view(db: AsyncSession, workspace_id: str, user_id: str) -> None:
    if await db.get(Membership, (workspace_id, user_id)) is None:
        raise NotFoundError("Workspace not found")


async def list_members(db: AsyncSession, workspace_id: str, user_id: str, params: PageParams) -> Page[Membership]:
    await _require_member_view(db, workspace_id, user_id)
    stmt = select(Membership).where(Membership.workspace_id == workspace_id)
    return await paginate(db, stmt, key=Membership.user_id, params=params)


async def get_member(db: AsyncSession, workspace_id: str, user_id: str, member_id: str) -> Membership:
    await _require_member_view(db, workspace_id, user_id)
    member = await db.get(Membership, (workspace_id, member_id))
    if member is None:
        raise NotFoundError("Member not found")
    return member


async def add_member(db: AsyncSession, guard: Guard, workspace_id: str, user_id: str, body: MemberAdd) -> Membership:
    """Add *body.user_id* as a plain member.  Owner only; both quotas apply."""
    async with transaction(db):
        await verify_ownership(db, workspace_id, user_id)
        if body.role != MembershipRole.MEMBER:
            raise BadRequestError('Role can only be "member"')
        if await db.get(Membership, (workspace_id, body.user_id)) is not None:
            raise BadRequestError("User is already a member of this workspace")
        await guard.check_member_quota(db, workspace_id)
        await guard.check_workspace_quota(db, body.user_id, subject="User has")

        membership = Membership(workspace_id=workspace_id, user_id=body.user_id, role=body.role)
        db.add(membership)
        await db.flush()
    await db.refresh(membership)
    return membership


async def delete_member(db: AsyncSession, workspace_id: str, user_id: str, member_id: str) -> None:
    async with transaction(db):
        await verify_ownership(db, workspace_id, user_id)
        if member_id == user_id:
            raise ForbiddenError("Owner cannot be deleted")
        result = await db.execute(
            delete(Membership).where(Membership.workspace_id == workspace_id, Membership.user_id == member_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("Member not found")


async def transfer_owner(db: AsyncSession, workspace_id: str, user_id: str, new_owner_id: str) -> None:
    """Hand ownership to an existing member; the previous owner becomes a member."""
    async with transaction(db):
        await verify_ownership(db, workspace_id, user_id)
        if new_owner_id == user_id:
            return
        if await db.get(Membership, (workspace_id, new_owner_id)) is None:
            raise NotFoundError("New owner must be an existing member")

        await db.execute(
            update(Membership)
            .where(Membership.workspace_id == workspace_id, Membership.user_id == user_id)
            .values(role=MembershipRole.MEMBER)
        )
        await db.execute(
            update(Membership)
            .where(Membership.workspace_id == workspace_id, Membership.user_id == new_owner_id)
            .values(role=MembershipRole.OWNER)
        )
    logger.info("Transferred ownership of workspace {} from {} to {}", workspace_id, user_id, new_owner_id)
