"""Keyset (cursor) pagination shared by every list endpoint.

Lists are newest-first: items come back in descending order of a unique
ordering key (a time-sortable id or an integer version).  Cursors are
positional relative to that listing:

- no cursor: the first page;
- ``after=X``: the page that follows ``X`` (keys below ``X``);
- ``before=X``: the page that precedes ``X`` (keys above ``X``).  Rows are
  fetched ascending so the ones closest to the cursor win, then reversed.

``limit + 1`` rows are fetched so ``has_more`` can be answered without a
count query.  Pages are not snapshot-isolated: rows inserted or deleted
between two calls may shift page boundaries.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from operator import attrgetter
from typing import Any, Generic, TypeVar

from fastapi import Query
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field, ValidationError, model_validator
from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from tavern.api.errors import BadRequestError

T = TypeVar("T")

DEFAULT_LIMIT = 50
MAX_LIMIT = 100

BOTH_CURSORS_MESSAGE = "Cannot use both after and before cursors"


class PageParams(BaseModel):
    """Cursor parameters for string-keyed lists."""

    after: str | None = None
    before: str | None = None
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)

    @model_validator(mode="after")
    def _single_cursor(self) -> PageParams:
        if self.after is not None and self.before is not None:
            raise ValueError(BOTH_CURSORS_MESSAGE)
        return self


class VersionPageParams(PageParams):
    """Cursor parameters for integer version lists."""

    after: int | None = None  # type: ignore[assignment]
    before: int | None = None  # type: ignore[assignment]


class Page(Generic[T]):
    """One page of items in descending key order.

    Must stay a plain class: FastAPI deep-copies dataclass responses, ORM
    rows in ``items`` included.
    """

    def __init__(self, items: list[T], has_more: bool, first: Any = None, last: Any = None) -> None:
        self.items = items
        self.has_more = has_more
        self.first = first
        self.last = last

    def __repr__(self) -> str:
        return f"Page(items={len(self.items)}, has_more={self.has_more}, first={self.first!r}, last={self.last!r})"


def shape_page(
    rows: Sequence[T],
    *,
    limit: int,
    backward: bool,
    cursor_of: Callable[[T], Any],
) -> Page[T]:
    """Turn a ``limit + 1`` fetch into a page in descending key order."""
    items = list(rows)
    has_more = len(items) > limit
    if has_more:
        items = items[:limit]
    if backward:
        items.reverse()
    if not items:
        return Page(items=[], has_more=has_more)
    return Page(items=items, has_more=has_more, first=cursor_of(items[0]), last=cursor_of(items[-1]))


async def paginate(
    db: AsyncSession,
    stmt: Select,
    *,
    key: Any,
    params: PageParams,
    cursor_of: Callable[[Any], Any] | None = None,
    scalars: bool = True,
) -> Page[Any]:
    """Execute *stmt* as one cursor page ordered by the unique column *key*.

    *stmt* must not carry its own ``ORDER BY`` or ``LIMIT``.  ``cursor_of``
    extracts the key from a result item; by default the attribute named after
    *key* is read.  With ``scalars=False`` items are full result rows (for
    multi-entity selects such as workspace + role).
    """
    if params.after is not None and params.before is not None:
        raise BadRequestError(BOTH_CURSORS_MESSAGE)

    backward = params.before is not None
    if params.after is not None:
        stmt = stmt.where(key < params.after)
    if backward:
        stmt = stmt.where(key > params.before).order_by(key.asc())
    else:
        stmt = stmt.order_by(key.desc())

    result = await db.execute(stmt.limit(params.limit + 1))
    rows = result.scalars().all() if scalars else result.all()

    if cursor_of is None:
        cursor_of = attrgetter(key.key)

    return shape_page(rows, limit=params.limit, backward=backward, cursor_of=cursor_of)


# -- FastAPI dependencies ----------------------------------------------------


def page_params(
    after: str | None = Query(None, description="Return the page after this cursor."),
    before: str | None = Query(None, description="Return the page before this cursor."),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
) -> PageParams:
    try:
        return PageParams(after=after, before=before, limit=limit)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False)) from None


def version_page_params(
    after: int | None = Query(None, description="Return versions older than this one."),
    before: int | None = Query(None, description="Return versions newer than this one."),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
) -> VersionPageParams:
    try:
        return VersionPageParams(after=after, before=before, limit=limit)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False)) from None
