"""Data models for the Tavern API."""

from tavern.api.models.enums import (
    AppType,
    ArtifactKind,
    EntityState,
    MembershipRole,
    MessageRole,
)
from tavern.api.models.metadata import (
    AgentMetadata,
    AppMetadata,
    merge_metadata,
)

__all__ = [
    # Metadata
    "AgentMetadata",
    "AppMetadata",
    # Enums
    "AppType",
    "ArtifactKind",
    "EntityState",
    "MembershipRole",
    "MessageRole",
    "merge_metadata",
]
