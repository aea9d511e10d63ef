"""Service configuration loaded from TAVERN_* environment variables."""

from __future__ import annotations

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class TavernSettings(BaseSettings):
    """Tavern platform API settings.

    All fields are read from environment variables with the ``TAVERN_`` prefix.
    For example, ``TAVERN_LOG_LEVEL=DEBUG`` maps to ``log_level``.

    Model-provider keys, vector store and object storage credentials are
    **not** managed here -- those services sit behind their own adapters and
    only opaque identifiers for them reach this API.
    """

    model_config = SettingsConfigDict(
        env_prefix="TAVERN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Infrastructure --------------------------------------------------------
    database_url: str | None = None
    """PostgreSQL connection string (``postgresql+psycopg://``).  Required."""

    # -- Auth ------------------------------------------------------------------
    auth_token: SecretStr | None = None
    """Shared secret expected from the identity gateway as a bearer token.

    When unset, identity headers are trusted as-is (local development).
    """

    admin_org_id: str | None = None
    """Organization whose ``org:admin`` members get admin procedures."""

    # -- Quotas ----------------------------------------------------------------
    max_workspaces_per_user: int = 10
    max_members_per_workspace: int = 50
    max_apps_per_workspace: int = 50

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000


def get_settings() -> TavernSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to
    force a re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> TavernSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return TavernSettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
