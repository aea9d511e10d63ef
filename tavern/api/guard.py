"""Workspace membership, ownership and quota checks.

All checks are read-only and raise ``ForbiddenError`` on failure.  Callers run
them inside the same transaction as the write they protect, so a membership
revoked concurrently cannot slip between check and write.  Quota checks count
then insert; under concurrent creation the store's isolation level decides
whether two inserts can both pass, which is accepted as best-effort
enforcement.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from tavern.api.db.tables import App, Membership
from tavern.api.errors import ForbiddenError
from tavern.api.models.enums import MembershipRole

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tavern.api.settings import TavernSettings


@dataclass(frozen=True)
class QuotaLimits:
    max_workspaces_per_user: int = 10
    max_members_per_workspace: int = 50
    max_apps_per_workspace: int = 50

    @classmethod
    def from_settings(cls, settings: TavernSettings) -> QuotaLimits:
        return cls(
            max_workspaces_per_user=settings.max_workspaces_per_user,
            max_members_per_workspace=settings.max_members_per_workspace,
            max_apps_per_workspace=settings.max_apps_per_workspace,
        )


async def verify_membership(db: AsyncSession, workspace_id: str, user_id: str) -> Membership:
    """Return the caller's membership.  Raises ``ForbiddenError`` if absent."""
    membership = await db.get(Membership, (workspace_id, user_id))
    if membership is None:
        raise ForbiddenError("You are not a member of this workspace")
    return membership


async def verify_ownership(db: AsyncSession, workspace_id: str, user_id: str) -> Membership:
    """Return the caller's owner membership.  Raises ``ForbiddenError`` otherwise."""
    membership = await verify_membership(db, workspace_id, user_id)
    if membership.role != MembershipRole.OWNER:
        raise ForbiddenError("Only workspace owner can perform this action")
    return membership


class Guard:
    """Quota enforcement with explicitly injected limits."""

    def __init__(self, limits: QuotaLimits) -> None:
        self.limits = limits

    async def check_workspace_quota(self, db: AsyncSession, user_id: str, *, subject: str = "You have") -> None:
        """Fail if *user_id* already belongs to the maximum number of workspaces."""
        count = await db.scalar(select(func.count()).select_from(Membership).where(Membership.user_id == user_id))
        limit = self.limits.max_workspaces_per_user
        if count >= limit:
            raise ForbiddenError(f"{subject} reached the maximum limit of {limit} workspaces")

    async def check_member_quota(self, db: AsyncSession, workspace_id: str) -> None:
        count = await db.scalar(
            select(func.count()).select_from(Membership).where(Membership.workspace_id == workspace_id)
        )
        limit = self.limits.max_members_per_workspace
        if count >= limit:
            raise ForbiddenError(f"Workspace has reached the maximum limit of {limit} members")

    async def check_app_quota(self, db: AsyncSession, workspace_id: str) -> None:
        count = await db.scalar(select(func.count()).select_from(App).where(App.workspace_id == workspace_id))
        limit = self.limits.max_apps_per_workspace
        if count >= limit:
            raise ForbiddenError(f"Workspace has reached the maximum limit of {limit} applications")
