"""Agent operations.

Agents live under an app and share its draft/publish lifecycle: they have
their own draft row, but published agent versions are only ever written by
the owning app's publish, numbered with the app's version.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tavern.api.db.engine import transaction
from tavern.api.db.tables import Agent, AgentVersion, App
from tavern.api.errors import NotFoundError
from tavern.api.guard import verify_membership
from tavern.api.models.api import AgentCreate, AgentUpdate
from tavern.api.models.metadata import merge_metadata
from tavern.api.pagination import Page, PageParams, VersionPageParams, paginate
from tavern.api.versioning import VersionedEntity, VersionSelector

agent_store: VersionedEntity[Agent, AgentVersion] = VersionedEntity(
    Agent,
    AgentVersion,
    owner_key="agent_id",
    fields=("name", "metadata_"),
    label="Agent",
)


async def _app_for_member(db: AsyncSession, app_id: str, user_id: str) -> App:
    app = await db.get(App, app_id)
    if app is None:
        raise NotFoundError(f"App with id {app_id} not found")
    await verify_membership(db, app.workspace_id, user_id)
    return app


async def get_agent(db: AsyncSession, agent_id: str, user_id: str) -> Agent:
    """Resolve agent -> app -> workspace and check the caller is a member."""
    agent = await agent_store.get(db, agent_id)
    await _app_for_member(db, agent.app_id, user_id)
    return agent


async def list_agents(db: AsyncSession, app_id: str, user_id: str, params: PageParams) -> Page[Agent]:
    await _app_for_member(db, app_id, user_id)
    return await paginate(db, select(Agent).where(Agent.app_id == app_id), key=Agent.id, params=params)


async def list_versions(
    db: AsyncSession, agent_id: str, user_id: str, params: VersionPageParams
) -> Page[AgentVersion]:
    await get_agent(db, agent_id, user_id)
    return await agent_store.list_versions(db, agent_id, params)


async def get_version(db: AsyncSession, agent_id: str, user_id: str, selector: VersionSelector) -> AgentVersion:
    await get_agent(db, agent_id, user_id)
    return await agent_store.get_version(db, agent_id, selector)


async def create_agent(db: AsyncSession, user_id: str, body: AgentCreate) -> tuple[Agent, AgentVersion]:
    async with transaction(db):
        await _app_for_member(db, body.app_id, user_id)
        agent, draft = await agent_store.create(
            db,
            app_id=body.app_id,
            name=body.name,
            metadata_=merge_metadata({}, body.metadata),
        )
    await db.refresh(agent)
    await db.refresh(draft)
    return agent, draft


async def update_agent(db: AsyncSession, agent_id: str, user_id: str, body: AgentUpdate) -> tuple[Agent, AgentVersion]:
    changes = body.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        changes.pop("name", None)
    if "metadata" in changes:
        changes["metadata_"] = changes.pop("metadata")

    async with transaction(db):
        await get_agent(db, agent_id, user_id)
        agent, draft = await agent_store.update(db, agent_id, changes)
    await db.refresh(agent)
    await db.refresh(draft)
    return agent, draft


async def delete_agent(db: AsyncSession, agent_id: str, user_id: str) -> None:
    async with transaction(db):
        await get_agent(db, agent_id, user_id)
        await agent_store.delete(db, agent_id)
