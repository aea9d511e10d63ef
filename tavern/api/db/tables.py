"""SQLAlchemy ORM models for PostgreSQL.

These are the single source of truth for the database schema. Alembic reads
``Base.metadata`` to autogenerate migration scripts.

Uses SQLAlchemy 2.0 declarative style with ``Mapped`` type annotations.

Apps and agents follow the head/version layout: the head row (``apps``,
``agents``) carries the externally visible state, while ``app_versions`` /
``agent_versions`` hold one draft row (``version = DRAFT_VERSION``) plus any
number of immutable published snapshots keyed by publish time.
"""

from __future__ import annotations

import secrets
import threading
import time
from datetime import datetime
from functools import partial

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Timezone-aware timestamp type for all datetime columns.
TimestampTZ = DateTime(timezone=True)

DRAFT_VERSION = 0
"""Version number reserved for the draft row; published versions are larger."""


_ID_SUFFIX_BITS = 80
_id_lock = threading.Lock()
_last_id_state = (0, 0)


def new_id(prefix: str) -> str:
    """Generate a time-sortable opaque identifier: ``<prefix>_<32 hex>``.

    The first 12 hex digits encode the creation time in milliseconds and the
    remaining 20 a random suffix.  Within one millisecond (or when the wall
    clock steps back) the previous suffix is incremented instead, so ids
    generated by this process are strictly increasing and double as
    creation-order pagination cursors.
    """
    global _last_id_state
    with _id_lock:
        millis = time.time_ns() // 1_000_000
        last_millis, last_suffix = _last_id_state
        if millis > last_millis:
            suffix = secrets.randbits(_ID_SUFFIX_BITS)
        else:
            millis, suffix = last_millis, last_suffix + 1
            if suffix >> _ID_SUFFIX_BITS:
                millis, suffix = millis + 1, secrets.randbits(_ID_SUFFIX_BITS)
        _last_id_state = (millis, suffix)
    return f"{prefix}_{millis:012x}{suffix:020x}"


class Base(DeclarativeBase):
    """Declarative base with naming convention for constraints."""

    pass


# Apply naming convention to the metadata for deterministic constraint names.
Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------


class Workspace(Base):
    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(primary_key=True, default=partial(new_id, "ws"))
    name: Mapped[str]
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class Membership(Base):
    __tablename__ = "memberships"
    __table_args__ = (Index("ix_memberships_user_id", "user_id"),)

    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.id"), primary_key=True)
    user_id: Mapped[str] = mapped_column(primary_key=True)
    role: Mapped[str]
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


# ---------------------------------------------------------------------------
# Apps and agents (head + version chain)
# ---------------------------------------------------------------------------


class App(Base):
    __tablename__ = "apps"
    __table_args__ = (Index("ix_apps_workspace_id", "workspace_id"),)

    id: Mapped[str] = mapped_column(primary_key=True, default=partial(new_id, "app"))
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.id"))
    type: Mapped[str]
    name: Mapped[str]
    metadata_: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class AppVersion(Base):
    __tablename__ = "app_versions"

    app_id: Mapped[str] = mapped_column(ForeignKey("apps.id"), primary_key=True)
    version: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    type: Mapped[str]
    name: Mapped[str]
    metadata_: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class Agent(Base):
    __tablename__ = "agents"
    __table_args__ = (Index("ix_agents_app_id", "app_id"),)

    id: Mapped[str] = mapped_column(primary_key=True, default=partial(new_id, "agent"))
    app_id: Mapped[str] = mapped_column(ForeignKey("apps.id"))
    name: Mapped[str]
    metadata_: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class AgentVersion(Base):
    __tablename__ = "agent_versions"

    agent_id: Mapped[str] = mapped_column(ForeignKey("agents.id"), primary_key=True)
    version: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[str]
    metadata_: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


# ---------------------------------------------------------------------------
# Categories and tags
# ---------------------------------------------------------------------------


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(primary_key=True, default=partial(new_id, "cat"))
    name: Mapped[str] = mapped_column(unique=True)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class Tag(Base):
    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(primary_key=True)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class AppsToCategories(Base):
    __tablename__ = "apps_to_categories"

    app_id: Mapped[str] = mapped_column(ForeignKey("apps.id"), primary_key=True)
    category_id: Mapped[str] = mapped_column(ForeignKey("categories.id"), primary_key=True)


class AppsToTags(Base):
    __tablename__ = "apps_to_tags"

    app_id: Mapped[str] = mapped_column(ForeignKey("apps.id"), primary_key=True)
    tag: Mapped[str] = mapped_column(ForeignKey("tags.name"), primary_key=True)


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


class Chat(Base):
    __tablename__ = "chats"
    __table_args__ = (Index("ix_chats_app_id_user_id", "app_id", "user_id"),)

    id: Mapped[str] = mapped_column(primary_key=True, default=partial(new_id, "chat"))
    app_id: Mapped[str] = mapped_column(ForeignKey("apps.id", ondelete="CASCADE"))
    user_id: Mapped[str]
    title: Mapped[str | None]
    metadata_: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_chat_id", "chat_id"),)

    id: Mapped[str] = mapped_column(primary_key=True, default=partial(new_id, "msg"))
    chat_id: Mapped[str] = mapped_column(ForeignKey("chats.id", ondelete="CASCADE"))
    role: Mapped[str]
    content: Mapped[list] = mapped_column(JSONB, nullable=False)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class MessageVote(Base):
    __tablename__ = "message_votes"

    chat_id: Mapped[str] = mapped_column(ForeignKey("chats.id", ondelete="CASCADE"), primary_key=True)
    message_id: Mapped[str] = mapped_column(ForeignKey("messages.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[str] = mapped_column(primary_key=True)
    is_upvoted: Mapped[bool]
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


# ---------------------------------------------------------------------------
# Artifacts (append-only version chain, identity is (id, version))
# ---------------------------------------------------------------------------


class Artifact(Base):
    __tablename__ = "artifacts"
    __table_args__ = (Index("ix_artifacts_chat_id", "chat_id"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    version: Mapped[int] = mapped_column(Integer, primary_key=True)
    chat_id: Mapped[str] = mapped_column(ForeignKey("chats.id", ondelete="CASCADE"))
    user_id: Mapped[str]
    title: Mapped[str]
    kind: Mapped[str]
    content: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class ArtifactSuggestion(Base):
    __tablename__ = "artifact_suggestions"
    __table_args__ = (
        ForeignKeyConstraint(
            ["artifact_id", "artifact_version"],
            ["artifacts.id", "artifacts.version"],
            name="fk_artifact_suggestions_artifact",
            ondelete="CASCADE",
        ),
        Index("ix_artifact_suggestions_artifact_id", "artifact_id"),
    )

    id: Mapped[str] = mapped_column(primary_key=True, default=partial(new_id, "sugg"))
    artifact_id: Mapped[str]
    artifact_version: Mapped[int] = mapped_column(Integer)
    user_id: Mapped[str]
    original_text: Mapped[str] = mapped_column(Text)
    suggested_text: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    is_resolved: Mapped[bool] = mapped_column(default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


# ---------------------------------------------------------------------------
# Retrieval content
# ---------------------------------------------------------------------------


class Dataset(Base):
    __tablename__ = "datasets"
    __table_args__ = (Index("ix_datasets_workspace_id", "workspace_id"),)

    id: Mapped[str] = mapped_column(primary_key=True, default=partial(new_id, "dataset"))
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.id"))
    name: Mapped[str]
    metadata_: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (Index("ix_documents_dataset_id", "dataset_id"),)

    id: Mapped[str] = mapped_column(primary_key=True, default=partial(new_id, "doc"))
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.id"))
    dataset_id: Mapped[str] = mapped_column(ForeignKey("datasets.id", ondelete="CASCADE"))
    name: Mapped[str]
    metadata_: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())
