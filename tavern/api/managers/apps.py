"""App operations: listing, draft/publish lifecycle, tags and categories.

An app is a versioned entity whose publish and delete cascade to its agents.
All app operations require the caller to be a member of the app's workspace.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from loguru import logger
from sqlalchemy import Select, delete, func, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tavern.api.db.engine import transaction
from tavern.api.db.tables import App, AppsToCategories, AppsToTags, AppVersion, Category, Tag
from tavern.api.errors import BadRequestError, NotFoundError
from tavern.api.guard import Guard, verify_membership
from tavern.api.managers.agents import agent_store
from tavern.api.models.api import AppCreate, AppUpdate, CategoriesUpdate
from tavern.api.models.metadata import DEFAULT_APP_METADATA, merge_metadata
from tavern.api.pagination import Page, PageParams, VersionPageParams, paginate
from tavern.api.versioning import VersionedEntity, VersionSelector

LABEL_PREVIEW_SIZE = 5


class AppStore(VersionedEntity[App, AppVersion]):
    """App versioning with the agent cascade attached."""

    def __init__(self, agents: VersionedEntity) -> None:
        super().__init__(App, AppVersion, owner_key="app_id", fields=("type", "name", "metadata_"), label="App")
        self.agents = agents

    async def _after_publish(self, db: AsyncSession, head: App, version: int) -> None:
        published = await self.agents.publish_children(db, "app_id", head.id, version)
        logger.debug("Published {} agents of app {} at version {}", published, head.id, version)

    async def _before_delete(self, db: AsyncSession, entity_id: str) -> None:
        await self.agents.delete_children(db, "app_id", entity_id)
        await db.execute(delete(AppsToCategories).where(AppsToCategories.app_id == entity_id))
        await db.execute(delete(AppsToTags).where(AppsToTags.app_id == entity_id))


app_store = AppStore(agent_store)


async def get_app(db: AsyncSession, app_id: str, user_id: str) -> App:
    """Return the app after checking the caller belongs to its workspace."""
    app = await app_store.get(db, app_id)
    await verify_membership(db, app.workspace_id, user_id)
    return app


# -- Listing -------------------------------------------------------------------


async def _label_previews(db: AsyncSession, app_ids: list[str]) -> tuple[dict, dict]:
    """Fetch the first few category and tag names per app, oldest label first."""
    if not app_ids:
        return {}, {}

    ranked_categories = (
        select(
            AppsToCategories.app_id,
            Category.name,
            func.row_number()
            .over(partition_by=AppsToCategories.app_id, order_by=(Category.created_at.asc(), Category.id.asc()))
            .label("rank"),
        )
        .join(Category, Category.id == AppsToCategories.category_id)
        .where(AppsToCategories.app_id.in_(app_ids))
        .subquery()
    )
    ranked_tags = (
        select(
            AppsToTags.app_id,
            Tag.name,
            func.row_number()
            .over(partition_by=AppsToTags.app_id, order_by=(Tag.created_at.asc(), Tag.name.asc()))
            .label("rank"),
        )
        .join(Tag, Tag.name == AppsToTags.tag)
        .where(AppsToTags.app_id.in_(app_ids))
        .subquery()
    )

    previews: list[dict[str, list[str]]] = []
    for ranked in (ranked_categories, ranked_tags):
        names: dict[str, list[str]] = defaultdict(list)
        rows = await db.execute(
            select(ranked.c.app_id, ranked.c.name)
            .where(ranked.c.rank <= LABEL_PREVIEW_SIZE)
            .order_by(ranked.c.app_id, ranked.c.rank)
        )
        for app_id, name in rows:
            names[app_id].append(name)
        previews.append(names)
    return previews[0], previews[1]


async def _list_with_labels(db: AsyncSession, stmt: Select, params: PageParams) -> Page[dict[str, Any]]:
    page = await paginate(db, stmt, key=App.id, params=params)
    categories, tags = await _label_previews(db, [app.id for app in page.items])
    page.items = [
        {"app": app, "categories": categories.get(app.id, []), "tags": tags.get(app.id, [])} for app in page.items
    ]
    return page


async def list_apps(db: AsyncSession, workspace_id: str, user_id: str, params: PageParams) -> Page[dict[str, Any]]:
    await verify_membership(db, workspace_id, user_id)
    return await _list_with_labels(db, select(App).where(App.workspace_id == workspace_id), params)


async def list_apps_by_category(
    db: AsyncSession, workspace_id: str, category_id: str, user_id: str, params: PageParams
) -> Page[dict[str, Any]]:
    await verify_membership(db, workspace_id, user_id)
    linked = (
        select(AppsToCategories.app_id)
        .where(AppsToCategories.app_id == App.id, AppsToCategories.category_id == category_id)
        .exists()
    )
    return await _list_with_labels(db, select(App).where(App.workspace_id == workspace_id, linked), params)


async def list_apps_by_tags(
    db: AsyncSession, workspace_id: str, tags: list[str], user_id: str, params: PageParams
) -> Page[dict[str, Any]]:
    """Apps carrying any of *tags*."""
    if not tags:
        raise BadRequestError("At least one tag is required")
    await verify_membership(db, workspace_id, user_id)
    linked = select(AppsToTags.app_id).where(AppsToTags.app_id == App.id, AppsToTags.tag.in_(tags)).exists()
    return await _list_with_labels(db, select(App).where(App.workspace_id == workspace_id, linked), params)


async def list_versions(db: AsyncSession, app_id: str, user_id: str, params: VersionPageParams) -> Page[AppVersion]:
    await get_app(db, app_id, user_id)
    return await app_store.list_versions(db, app_id, params)


async def get_version(db: AsyncSession, app_id: str, user_id: str, selector: VersionSelector) -> AppVersion:
    await get_app(db, app_id, user_id)
    return await app_store.get_version(db, app_id, selector)


# -- Lifecycle -----------------------------------------------------------------


async def create_app(db: AsyncSession, guard: Guard, user_id: str, body: AppCreate) -> tuple[App, AppVersion]:
    """Create an app and its draft.  Unset model metadata falls back to defaults."""
    async with transaction(db):
        await verify_membership(db, body.workspace_id, user_id)
        await guard.check_app_quota(db, body.workspace_id)
        app, draft = await app_store.create(
            db,
            workspace_id=body.workspace_id,
            type=body.type,
            name=body.name,
            metadata_=merge_metadata(DEFAULT_APP_METADATA, body.metadata),
        )
    await db.refresh(app)
    await db.refresh(draft)
    logger.info("Created app {} in workspace {}", app.id, app.workspace_id)
    return app, draft


async def update_app(db: AsyncSession, app_id: str, user_id: str, body: AppUpdate) -> tuple[App, AppVersion]:
    changes = body.model_dump(exclude_unset=True)
    for key in ("type", "name"):
        if key in changes and changes[key] is None:
            del changes[key]
    if "metadata" in changes:
        changes["metadata_"] = changes.pop("metadata")

    async with transaction(db):
        await get_app(db, app_id, user_id)
        app, draft = await app_store.update(db, app_id, changes)
    await db.refresh(app)
    await db.refresh(draft)
    return app, draft


async def publish_app(db: AsyncSession, app_id: str, user_id: str) -> tuple[App, int]:
    async with transaction(db):
        await get_app(db, app_id, user_id)
        app, version = await app_store.publish(db, app_id)
    await db.refresh(app)
    return app, version


async def delete_app(db: AsyncSession, app_id: str, user_id: str) -> None:
    """Delete the app with its agents, versions and label links.

    Chats and everything hanging off them go with the app through
    ``ON DELETE CASCADE``.
    """
    async with transaction(db):
        await get_app(db, app_id, user_id)
        await app_store.delete(db, app_id)
    logger.info("Deleted app {}", app_id)


# -- Tags and categories -------------------------------------------------------


async def update_tags(db: AsyncSession, app_id: str, user_id: str, tags: list[str]) -> list[Tag]:
    """Replace the app's tags.  Returns the first few tags now attached."""
    names = list(dict.fromkeys(tag.strip() for tag in tags if tag.strip()))
    async with transaction(db):
        await get_app(db, app_id, user_id)
        await db.execute(delete(AppsToTags).where(AppsToTags.app_id == app_id))
        if names:
            await db.execute(pg_insert(Tag).values([{"name": name} for name in names]).on_conflict_do_nothing())
            await db.execute(insert(AppsToTags).values([{"app_id": app_id, "tag": name} for name in names]))
        result = await db.execute(
            select(Tag)
            .join(AppsToTags, AppsToTags.tag == Tag.name)
            .where(AppsToTags.app_id == app_id)
            .order_by(Tag.created_at.asc(), Tag.name.asc())
            .limit(LABEL_PREVIEW_SIZE)
        )
        attached = list(result.scalars().all())
    return attached


async def update_categories(db: AsyncSession, app_id: str, user_id: str, body: CategoriesUpdate) -> list[Category]:
    """Detach ``body.remove`` then attach ``body.add``; returns all attached categories."""
    async with transaction(db):
        await get_app(db, app_id, user_id)
        if body.remove:
            await db.execute(
                delete(AppsToCategories).where(
                    AppsToCategories.app_id == app_id,
                    AppsToCategories.category_id.in_(body.remove),
                )
            )
        if body.add:
            wanted = set(body.add)
            found = set((await db.execute(select(Category.id).where(Category.id.in_(wanted)))).scalars())
            missing = sorted(wanted - found)
            if missing:
                raise NotFoundError(f"Category with id {missing[0]} not found")
            await db.execute(
                pg_insert(AppsToCategories)
                .values([{"app_id": app_id, "category_id": category_id} for category_id in sorted(wanted)])
                .on_conflict_do_nothing()
            )
        result = await db.execute(
            select(Category)
            .join(AppsToCategories, AppsToCategories.category_id == Category.id)
            .where(AppsToCategories.app_id == app_id)
            .order_by(Category.created_at.asc(), Category.id.asc())
        )
        attached = list(result.scalars().all())
    return attached


async def list_categories(db: AsyncSession, params: PageParams) -> Page[Category]:
    return await paginate(db, select(Category), key=Category.id, params=params)


async def create_category(db: AsyncSession, name: str) -> Category:
    category = Category(name=name)
    try:
        async with transaction(db):
            db.add(category)
            await db.flush()
    except IntegrityError:
        raise BadRequestError(f"Category '{name}' already exists") from None
    await db.refresh(category)
    return category
