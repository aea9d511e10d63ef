"""API request / response schemas for the RPC endpoints.

These thin schemas sit between HTTP and the ORM layer:

- **Create** schemas validate user input and provide defaults.
- **Update** schemas allow partial updates via ``exclude_unset``.
- **Response** schemas serialize ORM rows via ``from_attributes``.

ORM attributes named ``metadata_`` (to avoid the declarative ``metadata``
attribute) are exposed as ``metadata`` through ``validation_alias``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from tavern.api.models.enums import AppType, ArtifactKind, MembershipRole, MessageRole
from tavern.api.models.metadata import AgentMetadata, AppMetadata

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Pagination envelope
# ---------------------------------------------------------------------------


class PageResponse(BaseModel, Generic[T]):
    """One cursor page.  ``first`` / ``last`` are the boundary keys."""

    model_config = ConfigDict(from_attributes=True)

    items: list[T]
    has_more: bool
    first: str | int | None = None
    last: str | int | None = None


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class WorkspaceUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class WorkspaceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


class WorkspaceWithRole(BaseModel):
    """A workspace together with the caller's role in it."""

    model_config = ConfigDict(from_attributes=True)

    workspace: WorkspaceResponse
    role: MembershipRole


class MemberAdd(BaseModel):
    user_id: str = Field(min_length=1)
    role: MembershipRole = MembershipRole.MEMBER


class TransferOwner(BaseModel):
    user_id: str = Field(min_length=1)


class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    workspace_id: str
    user_id: str
    role: MembershipRole
    created_at: datetime


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------


class AppCreate(BaseModel):
    workspace_id: str = Field(min_length=1)
    type: AppType = AppType.SINGLE_AGENT
    name: str = Field(min_length=1, max_length=255)
    metadata: AppMetadata = Field(default_factory=AppMetadata)


class AppUpdate(BaseModel):
    """Partial update of the app draft.

    ``metadata`` is merged key-by-key; only keys the caller sends change.
    """

    type: AppType | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    metadata: AppMetadata | None = None


class AppResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    workspace_id: str
    type: AppType
    name: str
    metadata: dict = Field(default_factory=dict, validation_alias="metadata_")
    created_at: datetime
    updated_at: datetime


class AppVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    app_id: str
    version: int
    type: AppType
    name: str
    metadata: dict = Field(default_factory=dict, validation_alias="metadata_")
    created_at: datetime
    updated_at: datetime


class AppWithDraft(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    app: AppResponse
    draft: AppVersionResponse


class AppPublished(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    app: AppResponse
    version: int


class AppListItem(BaseModel):
    """App with a preview of up to five category and tag names."""

    model_config = ConfigDict(from_attributes=True)

    app: AppResponse
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class TagsUpdate(BaseModel):
    tags: list[str] = Field(max_length=10)


class TagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    created_at: datetime


class TagsResponse(BaseModel):
    tags: list[TagResponse]


class CategoriesUpdate(BaseModel):
    add: list[str] | None = None
    remove: list[str] | None = None


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class AgentCreate(BaseModel):
    app_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=255)
    metadata: AgentMetadata = Field(default_factory=AgentMetadata)


class AgentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    metadata: AgentMetadata | None = None


class AgentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    app_id: str
    name: str
    metadata: dict = Field(default_factory=dict, validation_alias="metadata_")
    created_at: datetime
    updated_at: datetime


class AgentVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    agent_id: str
    version: int
    name: str
    metadata: dict = Field(default_factory=dict, validation_alias="metadata_")
    created_at: datetime
    updated_at: datetime


class AgentWithDraft(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    agent: AgentResponse
    draft: AgentVersionResponse


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatCreate(BaseModel):
    app_id: str = Field(min_length=1)
    title: str | None = None
    metadata: dict = Field(default_factory=dict)


class ChatUpdate(BaseModel):
    title: str | None = None
    metadata: dict | None = None


class ChatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    app_id: str
    user_id: str
    title: str | None = None
    metadata: dict = Field(default_factory=dict, validation_alias="metadata_")
    created_at: datetime
    updated_at: datetime


class MessageCreate(BaseModel):
    role: MessageRole
    content: list[dict[str, Any]] = Field(min_length=1)


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    chat_id: str
    role: MessageRole
    content: list[dict[str, Any]]
    created_at: datetime


class VoteCreate(BaseModel):
    is_upvoted: bool


class VoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    chat_id: str
    message_id: str
    user_id: str
    is_upvoted: bool


# ---------------------------------------------------------------------------
# Artifact
# ---------------------------------------------------------------------------


class ArtifactCreate(BaseModel):
    """Create an artifact, or append a version when ``id`` names an existing one."""

    id: str | None = None
    chat_id: str | None = Field(default=None, description="Required for a new artifact.")
    title: str = Field(min_length=1, max_length=255)
    kind: ArtifactKind | None = Field(default=None, description="Defaults to the previous version's kind, or text.")
    content: str | None = None


class ArtifactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    version: int
    chat_id: str
    user_id: str
    title: str
    kind: ArtifactKind
    content: str | None = None
    created_at: datetime
    updated_at: datetime


class DeleteVersionsAfter(BaseModel):
    after: int = Field(ge=1, description="Keep versions up to and including this one.")


class SuggestionCreate(BaseModel):
    artifact_version: int | None = Field(default=None, description="Defaults to the current version.")
    original_text: str
    suggested_text: str
    description: str | None = None


class SuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    artifact_id: str
    artifact_version: int
    user_id: str
    original_text: str
    suggested_text: str
    description: str | None = None
    is_resolved: bool
    created_at: datetime


# ---------------------------------------------------------------------------
# Dataset
# ---------------------------------------------------------------------------


class DatasetCreate(BaseModel):
    workspace_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=255)
    metadata: dict = Field(default_factory=dict)


class DatasetUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    metadata: dict | None = None


class DatasetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    workspace_id: str
    name: str
    metadata: dict = Field(default_factory=dict, validation_alias="metadata_")
    created_at: datetime
    updated_at: datetime


class DocumentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    metadata: dict = Field(default_factory=dict)


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    workspace_id: str
    dataset_id: str
    name: str
    metadata: dict = Field(default_factory=dict, validation_alias="metadata_")
    created_at: datetime
    updated_at: datetime


class DeletedResponse(BaseModel):
    """Number of rows removed by a bulk delete."""

    deleted: int
