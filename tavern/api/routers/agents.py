"""Agent endpoints (RPC-style)."""

from __future__ import annotations

from fastapi import APIRouter, status

from tavern.api.deps import CurrentUser, DbSession, Paging, VersionPaging
from tavern.api.managers import agents
from tavern.api.models.api import (
    AgentCreate,
    AgentResponse,
    AgentUpdate,
    AgentVersionResponse,
    AgentWithDraft,
    PageResponse,
)
from tavern.api.versioning import parse_version_selector

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("/list", response_model=PageResponse[AgentResponse])
async def list_agents(app_id: str, caller: CurrentUser, page: Paging, db: DbSession):
    return await agents.list_agents(db, app_id, caller.user_id, page)


@router.get("/{agent_id}/get", response_model=AgentResponse)
async def get_agent(agent_id: str, caller: CurrentUser, db: DbSession):
    return await agents.get_agent(db, agent_id, caller.user_id)


@router.get("/{agent_id}/versions/list", response_model=PageResponse[AgentVersionResponse])
async def list_agent_versions(agent_id: str, caller: CurrentUser, page: VersionPaging, db: DbSession):
    return await agents.list_versions(db, agent_id, caller.user_id, page)


@router.get("/{agent_id}/versions/get", response_model=AgentVersionResponse)
async def get_agent_version(agent_id: str, caller: CurrentUser, db: DbSession, version: str = "latest"):
    return await agents.get_version(db, agent_id, caller.user_id, parse_version_selector(version))


@router.post("/create", response_model=AgentWithDraft, status_code=status.HTTP_201_CREATED)
async def create_agent(body: AgentCreate, caller: CurrentUser, db: DbSession):
    """Create an agent under an app.  It goes live with the app's next publish."""
    agent, draft = await agents.create_agent(db, caller.user_id, body)
    return {"agent": agent, "draft": draft}


@router.post("/{agent_id}/update", response_model=AgentWithDraft)
async def update_agent(agent_id: str, body: AgentUpdate, caller: CurrentUser, db: DbSession):
    agent, draft = await agents.update_agent(db, agent_id, caller.user_id, body)
    return {"agent": agent, "draft": draft}


@router.post("/{agent_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_agent(agent_id: str, caller: CurrentUser, db: DbSession) -> None:
    await agents.delete_agent(db, agent_id, caller.user_id)
