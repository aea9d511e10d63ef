"""Draft/publish versioning for head-plus-version-chain entities.

A versioned entity is a mutable *head* row plus a chain of version rows:

- exactly one **draft** row (``version = DRAFT_VERSION``), edited in place;
- zero or more **published** rows, immutable snapshots numbered by publish
  time.

While no published row exists the entity is ``DRAFT_ONLY`` and updates are
applied to the head as well (live editing).  Once ``PUBLISHED``, updates touch
only the draft and the head changes on the next publish.

``VersionedEntity`` implements this once; apps and agents are instances of it
with their own tables and payload fields.  Methods never commit: callers wrap
them in ``transaction()`` so multi-row writes land atomically.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Generic, Literal, TypeVar

from loguru import logger
from sqlalchemy import and_, case, cast, delete, func, literal, select, update
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession

from tavern.api.db.tables import DRAFT_VERSION
from tavern.api.errors import BadRequestError, InternalInconsistencyError, NotFoundError
from tavern.api.models.enums import EntityState
from tavern.api.models.metadata import merge_metadata
from tavern.api.pagination import Page, VersionPageParams, paginate

HeadT = TypeVar("HeadT")
VersionT = TypeVar("VersionT")

VersionSelector = int | Literal["latest", "draft"]


def parse_version_selector(raw: str | int) -> VersionSelector:
    """Accept ``"latest"``, ``"draft"`` or a non-negative version number."""
    if raw in ("latest", "draft"):
        return raw  # type: ignore[return-value]
    try:
        number = int(raw)
    except (TypeError, ValueError):
        msg = f"Invalid version '{raw}': expected a number, 'latest' or 'draft'"
        raise BadRequestError(msg) from None
    if number < DRAFT_VERSION:
        raise BadRequestError(f"Invalid version '{raw}': must not be negative")
    return number


def next_version_number(now: float, latest: int | None) -> int:
    """Pick the version number for a new publish.

    Wall-clock seconds, bumped past the latest published version when the
    clock has not advanced (same-second publish) or went backwards.
    """
    candidate = int(now)
    if latest is not None and candidate <= latest:
        candidate = latest + 1
    return candidate


class VersionedEntity(Generic[HeadT, VersionT]):
    """Draft/publish lifecycle over a head table and its version table.

    Args:
        head: ORM class of the head row (must have an ``id`` column).
        version: ORM class of the version rows (``version`` column plus the
            owner foreign key named by *owner_key*).
        owner_key: Attribute on *version* referencing the head id.
        fields: Payload attributes copied between head, draft and snapshots.
        label: Human-readable entity name used in error messages.
        clock: Returns the current time in seconds; swapped out in tests.
    """

    def __init__(
        self,
        head: type[HeadT],
        version: type[VersionT],
        *,
        owner_key: str,
        fields: tuple[str, ...],
        label: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.head = head
        self.version = version
        self.owner_key = owner_key
        self.fields = fields
        self.label = label
        self.clock = clock

    @property
    def _owner(self) -> Any:
        return getattr(self.version, self.owner_key)

    def _snapshot(self, row: Any) -> dict[str, Any]:
        return {field: getattr(row, field) for field in self.fields}

    # -- Reads -----------------------------------------------------------------

    async def get(self, db: AsyncSession, entity_id: str) -> HeadT:
        """Return the head row.  Raises ``NotFoundError`` if missing."""
        head = await db.get(self.head, entity_id)
        if head is None:
            raise NotFoundError(f"{self.label} with id {entity_id} not found")
        return head

    async def get_version(self, db: AsyncSession, entity_id: str, selector: VersionSelector = "latest") -> VersionT:
        """Resolve a version row by number, ``"latest"`` published, or ``"draft"``."""
        stmt = select(self.version).where(self._owner == entity_id)
        if selector == "draft":
            stmt = stmt.where(self.version.version == DRAFT_VERSION)
        elif selector == "latest":
            stmt = stmt.where(self.version.version > DRAFT_VERSION).order_by(self.version.version.desc()).limit(1)
        else:
            stmt = stmt.where(self.version.version == int(selector))

        row = (await db.execute(stmt)).scalars().first()
        if row is None:
            raise NotFoundError(f"{self.label} version '{selector}' not found for {self.label.lower()} {entity_id}")
        return row

    async def latest_published(self, db: AsyncSession, entity_id: str) -> int | None:
        return await db.scalar(
            select(func.max(self.version.version)).where(
                self._owner == entity_id,
                self.version.version > DRAFT_VERSION,
            )
        )

    async def state(self, db: AsyncSession, entity_id: str) -> EntityState:
        latest = await self.latest_published(db, entity_id)
        return EntityState.DRAFT_ONLY if latest is None else EntityState.PUBLISHED

    async def list_versions(self, db: AsyncSession, entity_id: str, params: VersionPageParams) -> Page[VersionT]:
        """Page through all versions (draft included), newest first."""
        await self.get(db, entity_id)
        stmt = select(self.version).where(self._owner == entity_id)
        return await paginate(db, stmt, key=self.version.version, params=params)

    async def _require_draft(self, db: AsyncSession, entity_id: str) -> VersionT:
        try:
            return await self.get_version(db, entity_id, "draft")
        except NotFoundError:
            msg = f"{self.label} {entity_id} has no draft version"
            raise InternalInconsistencyError(msg) from None

    # -- Writes ----------------------------------------------------------------

    async def create(self, db: AsyncSession, **values: Any) -> tuple[HeadT, VersionT]:
        """Insert the head row and its draft version."""
        head = self.head(**values)
        db.add(head)
        await db.flush()

        draft = self.version(**{self.owner_key: head.id, "version": DRAFT_VERSION}, **self._snapshot(head))
        db.add(draft)
        await db.flush()
        return head, draft

    async def update(self, db: AsyncSession, entity_id: str, changes: dict[str, Any]) -> tuple[HeadT, VersionT]:
        """Apply *changes* to the draft (and to the head while unpublished).

        ``changes`` holds only caller-set payload fields; ``metadata_`` is
        shallow-merged over the draft's current metadata.
        """
        head = await self.get(db, entity_id)
        draft = await self._require_draft(db, entity_id)
        state = await self.state(db, entity_id)

        values = {key: value for key, value in changes.items() if key in self.fields}
        if "metadata_" in values:
            values["metadata_"] = merge_metadata(draft.metadata_, values["metadata_"])

        for key, value in values.items():
            setattr(draft, key, value)
        if state is EntityState.DRAFT_ONLY:
            for key, value in values.items():
                setattr(head, key, value)

        await db.flush()
        return head, draft

    async def publish(self, db: AsyncSession, entity_id: str) -> tuple[HeadT, int]:
        """Snapshot the draft as a new published version and sync the head."""
        head = await self.get(db, entity_id)
        draft = await self._require_draft(db, entity_id)
        version = next_version_number(self.clock(), await self.latest_published(db, entity_id))

        snapshot = self._snapshot(draft)
        db.add(self.version(**{self.owner_key: entity_id, "version": version}, **snapshot))
        for key, value in snapshot.items():
            setattr(head, key, value)
        await db.flush()

        await self._after_publish(db, head, version)
        logger.info("Published {} {} as version {}", self.label.lower(), entity_id, version)
        return head, version

    async def delete(self, db: AsyncSession, entity_id: str) -> None:
        """Delete all version rows, dependents, then the head."""
        await self.get(db, entity_id)
        await self._before_delete(db, entity_id)
        await db.execute(delete(self.version).where(self._owner == entity_id))
        await db.execute(delete(self.head).where(self.head.id == entity_id))

    # -- Child cascades --------------------------------------------------------

    async def publish_children(self, db: AsyncSession, parent_key: str, parent_id: str, version: int) -> int:
        """Publish every entity whose *parent_key* is *parent_id* at *version*.

        Every child must have a draft; a missing one aborts the publish.  The
        heads are rewritten by a single ``UPDATE ... SET col = CASE id ...``
        statement.  Returns the number of children published.
        """
        parent_col = getattr(self.head, parent_key)
        rows = (
            await db.execute(
                select(self.head, self.version)
                .join(self.version, and_(self._owner == self.head.id, self.version.version == DRAFT_VERSION))
                .where(parent_col == parent_id)
            )
        ).all()
        total = await db.scalar(select(func.count()).select_from(self.head).where(parent_col == parent_id))
        if len(rows) != total:
            msg = f"Some {self.label.lower()}s of {parent_id} are missing draft versions"
            raise InternalInconsistencyError(msg)
        if not rows:
            return 0

        db.add_all(
            self.version(**{self.owner_key: child.id, "version": version}, **self._snapshot(draft))
            for child, draft in rows
        )

        columns = sa_inspect(self.head).columns
        values: dict[str, Any] = {}
        for field in self.fields:
            col_type = columns[field].type
            values[field] = case(
                {child.id: cast(literal(getattr(draft, field), col_type), col_type) for child, draft in rows},
                value=self.head.id,
            )
        ids = [child.id for child, _ in rows]
        await db.execute(
            update(self.head)
            .where(self.head.id.in_(ids))
            .values(**values, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        # Reload the rewritten heads so the identity map matches the table.
        await db.execute(select(self.head).where(self.head.id.in_(ids)).execution_options(populate_existing=True))
        return len(rows)

    async def delete_children(self, db: AsyncSession, parent_key: str, parent_id: str) -> int:
        """Delete every entity (and its versions) under *parent_id*."""
        parent_col = getattr(self.head, parent_key)
        ids = list((await db.execute(select(self.head.id).where(parent_col == parent_id))).scalars())
        if ids:
            await db.execute(delete(self.version).where(self._owner.in_(ids)))
            await db.execute(delete(self.head).where(self.head.id.in_(ids)))
        return len(ids)

    # -- Hooks -----------------------------------------------------------------

    async def _after_publish(self, db: AsyncSession, head: HeadT, version: int) -> None:
        """Called inside publish after the head is synced."""

    async def _before_delete(self, db: AsyncSession, entity_id: str) -> None:
        """Called inside delete before version rows are removed."""
