"""App and category endpoints (RPC-style).

App endpoints require membership in the app's workspace.  Listing
categories is public; creating them is reserved to platform admins.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status

from tavern.api.deps import AdminUser, AnyCaller, CurrentUser, DbSession, Paging, QuotaGuard, VersionPaging
from tavern.api.managers import apps
from tavern.api.models.api import (
    AppCreate,
    AppListItem,
    AppPublished,
    AppResponse,
    AppUpdate,
    AppVersionResponse,
    AppWithDraft,
    CategoriesUpdate,
    CategoryCreate,
    CategoryResponse,
    PageResponse,
    TagsResponse,
    TagsUpdate,
)
from tavern.api.versioning import parse_version_selector

router = APIRouter(prefix="/apps", tags=["apps"])
categories_router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("/list", response_model=PageResponse[AppListItem])
async def list_apps(workspace_id: str, caller: CurrentUser, page: Paging, db: DbSession):
    """List the workspace's apps, newest first, with category and tag previews."""
    return await apps.list_apps(db, workspace_id, caller.user_id, page)


@router.get("/list-by-category", response_model=PageResponse[AppListItem])
async def list_apps_by_category(workspace_id: str, category_id: str, caller: CurrentUser, page: Paging, db: DbSession):
    return await apps.list_apps_by_category(db, workspace_id, category_id, caller.user_id, page)


@router.get("/list-by-tags", response_model=PageResponse[AppListItem])
async def list_apps_by_tags(
    workspace_id: str,
    caller: CurrentUser,
    page: Paging,
    db: DbSession,
    tags: Annotated[list[str], Query(min_length=1, max_length=10)],
):
    """List apps carrying any of the given tags."""
    return await apps.list_apps_by_tags(db, workspace_id, tags, caller.user_id, page)


@router.get("/{app_id}/get", response_model=AppResponse)
async def get_app(app_id: str, caller: CurrentUser, db: DbSession):
    return await apps.get_app(db, app_id, caller.user_id)


@router.get("/{app_id}/versions/list", response_model=PageResponse[AppVersionResponse])
async def list_app_versions(app_id: str, caller: CurrentUser, page: VersionPaging, db: DbSession):
    """List published versions and the draft, newest first."""
    return await apps.list_versions(db, app_id, caller.user_id, page)


@router.get("/{app_id}/versions/get", response_model=AppVersionResponse)
async def get_app_version(app_id: str, caller: CurrentUser, db: DbSession, version: str = "latest"):
    """Get a version by number, ``latest`` published, or ``draft``."""
    return await apps.get_version(db, app_id, caller.user_id, parse_version_selector(version))


@router.post("/create", response_model=AppWithDraft, status_code=status.HTTP_201_CREATED)
async def create_app(body: AppCreate, caller: CurrentUser, guard: QuotaGuard, db: DbSession):
    app, draft = await apps.create_app(db, guard, caller.user_id, body)
    return {"app": app, "draft": draft}


@router.post("/{app_id}/update", response_model=AppWithDraft)
async def update_app(app_id: str, body: AppUpdate, caller: CurrentUser, db: DbSession):
    """Edit the draft.  The app itself changes too while it was never published."""
    app, draft = await apps.update_app(db, app_id, caller.user_id, body)
    return {"app": app, "draft": draft}


@router.post("/{app_id}/publish", response_model=AppPublished)
async def publish_app(app_id: str, caller: CurrentUser, db: DbSession):
    """Publish the draft of the app and all its agents as one new version."""
    app, version = await apps.publish_app(db, app_id, caller.user_id)
    return {"app": app, "version": version}


@router.post("/{app_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_app(app_id: str, caller: CurrentUser, db: DbSession) -> None:
    await apps.delete_app(db, app_id, caller.user_id)


@router.post("/{app_id}/tags/update", response_model=TagsResponse)
async def update_tags(app_id: str, body: TagsUpdate, caller: CurrentUser, db: DbSession):
    """Replace all tags of the app."""
    return {"tags": await apps.update_tags(db, app_id, caller.user_id, body.tags)}


@router.post("/{app_id}/categories/update", response_model=list[CategoryResponse])
async def update_categories(app_id: str, body: CategoriesUpdate, caller: CurrentUser, db: DbSession):
    return await apps.update_categories(db, app_id, caller.user_id, body)


# -- Categories ----------------------------------------------------------------


@categories_router.get("/list", response_model=PageResponse[CategoryResponse])
async def list_categories(caller: AnyCaller, page: Paging, db: DbSession):
    return await apps.list_categories(db, page)


@categories_router.post("/create", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(body: CategoryCreate, caller: AdminUser, db: DbSession):
    return await apps.create_category(db, body.name)
