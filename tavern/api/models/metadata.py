"""Typed metadata payloads and the shallow-merge rule used by updates.

Metadata is stored as JSONB.  The models below document the well-known keys
but allow arbitrary extra keys, so clients may attach opaque identifiers for
external services (vector store, model providers, ...).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class AppMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    description: str | None = None
    image_url: str | None = None
    language_model: str | None = None
    embedding_model: str | None = None
    rerank_model: str | None = None
    image_model: str | None = None
    dataset_bindings: list[str] | None = None


class AgentMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    description: str | None = None
    image_url: str | None = None
    language_model: str | None = None
    system_prompt: str | None = None
    tools: list[str] | None = None


DEFAULT_APP_METADATA: dict[str, Any] = {
    "language_model": "openai:gpt-4o-mini",
    "embedding_model": "openai:text-embedding-3-small",
    "rerank_model": "cohere:rerank-english-v3.0",
    "image_model": "openai:dall-e-3",
}


def merge_metadata(base: dict[str, Any] | None, patch: BaseModel | dict[str, Any] | None) -> dict[str, Any]:
    """Shallow-merge *patch* over *base* and return a new dict.

    Keys present in the patch overwrite, keys absent are preserved.  For a
    pydantic patch only fields the caller explicitly set count as present, so
    an omitted field never clobbers the stored value while an explicit
    ``null`` does.
    """
    merged = dict(base or {})
    if patch is None:
        return merged
    if isinstance(patch, BaseModel):
        patch = patch.model_dump(exclude_unset=True)
    merged.update(patch)
    return merged
