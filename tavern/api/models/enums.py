"""Shared enumerations used across the platform API."""

from __future__ import annotations

from enum import StrEnum

# -- Workspace ---------------------------------------------------------------


class MembershipRole(StrEnum):
    OWNER = "owner"
    MEMBER = "member"


# -- App ---------------------------------------------------------------------


class AppType(StrEnum):
    SINGLE_AGENT = "single-agent"
    MULTIPLE_AGENTS = "multiple-agents"


class EntityState(StrEnum):
    """Lifecycle state of a draft/publish versioned entity."""

    DRAFT_ONLY = "draft-only"
    PUBLISHED = "published"


# -- Chat --------------------------------------------------------------------


class MessageRole(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


# -- Artifact ----------------------------------------------------------------


class ArtifactKind(StrEnum):
    TEXT = "text"
    CODE = "code"
    IMAGE = "image"
    SHEET = "sheet"
