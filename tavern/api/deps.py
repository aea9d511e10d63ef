"""FastAPI dependency injection for DB sessions, caller identity and quotas.

Usage in route handlers::

    @router.post("/things/create")
    async def create_thing(caller: CurrentUser, db: DbSession, body: ThingCreate) -> ThingResponse:
        ...

Declare the caller dependency first so unauthenticated requests are rejected
before a database session is opened.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tavern.api.auth import Caller, check_gateway_token, resolve_caller
from tavern.api.errors import ForbiddenError, UnauthorizedError
from tavern.api.guard import Guard, QuotaLimits
from tavern.api.pagination import PageParams, VersionPageParams, page_params, version_page_params
from tavern.api.settings import get_settings


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an async SQLAlchemy session, closing it after the request.

    Managers commit through ``transaction()``.  If the handler raises, the
    session is closed and any open transaction is rolled back.
    """
    session_factory = getattr(request.app.state, "db_session_factory", None)
    if session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured (TAVERN_DATABASE_URL is unset).",
        )
    session: AsyncSession = session_factory()
    try:
        yield session
    finally:
        await session.close()


def get_caller(
    authorization: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
    x_org_id: Annotated[str | None, Header()] = None,
    x_org_role: Annotated[str | None, Header()] = None,
) -> Caller:
    """Resolve the (possibly anonymous) caller from gateway headers."""
    settings = get_settings()
    expected = settings.auth_token.get_secret_value() if settings.auth_token else None
    check_gateway_token(authorization, expected)
    return resolve_caller(x_user_id, x_org_id, x_org_role, admin_org_id=settings.admin_org_id)


def require_user(caller: Annotated[Caller, Depends(get_caller)]) -> Caller:
    if not caller.is_authenticated:
        raise UnauthorizedError()
    return caller


def require_admin(caller: Annotated[Caller, Depends(require_user)]) -> Caller:
    if not caller.is_admin:
        raise ForbiddenError()
    return caller


def get_quota_limits() -> QuotaLimits:
    return QuotaLimits.from_settings(get_settings())


def get_guard(limits: Annotated[QuotaLimits, Depends(get_quota_limits)]) -> Guard:
    return Guard(limits)


# -- Annotated type aliases for concise route signatures ---------------------

DbSession = Annotated[AsyncSession, Depends(get_db)]
"""Annotated dependency: async SQLAlchemy session (auto-closed after request)."""

AnyCaller = Annotated[Caller, Depends(get_caller)]
"""Annotated dependency: caller for public procedures (may be anonymous)."""

CurrentUser = Annotated[Caller, Depends(require_user)]
"""Annotated dependency: authenticated caller, 401 otherwise."""

AdminUser = Annotated[Caller, Depends(require_admin)]
"""Annotated dependency: authenticated admin caller, 403 otherwise."""

QuotaGuard = Annotated[Guard, Depends(get_guard)]
"""Annotated dependency: quota guard built from configured limits."""

Paging = Annotated[PageParams, Depends(page_params)]
"""Annotated dependency: cursor parameters for id-keyed lists."""

VersionPaging = Annotated[VersionPageParams, Depends(version_page_params)]
"""Annotated dependency: cursor parameters for version-keyed lists."""
