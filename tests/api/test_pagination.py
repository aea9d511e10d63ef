"""Unit tests for cursor pagination (no database)."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from tavern.api.db.tables import Category
from tavern.api.errors import BadRequestError
from tavern.api.pagination import PageParams, VersionPageParams, paginate, shape_page


def _identity(value: int) -> int:
    return value


# ---------------------------------------------------------------------------
# shape_page
# ---------------------------------------------------------------------------


def test_shape_page_forward_trims_extra_row() -> None:
    page = shape_page([9, 8, 7], limit=2, backward=False, cursor_of=_identity)
    assert page.items == [9, 8]
    assert page.has_more is True
    assert (page.first, page.last) == (9, 8)


def test_shape_page_backward_is_returned_descending() -> None:
    # Backward pages are fetched ascending from the cursor.
    page = shape_page([3, 4, 5], limit=2, backward=True, cursor_of=_identity)
    assert page.items == [4, 3]
    assert page.has_more is True
    assert (page.first, page.last) == (4, 3)


def test_shape_page_last_page() -> None:
    page = shape_page([2, 1], limit=5, backward=False, cursor_of=_identity)
    assert page.items == [2, 1]
    assert page.has_more is False


def test_shape_page_empty() -> None:
    page = shape_page([], limit=5, backward=False, cursor_of=_identity)
    assert page.items == []
    assert page.has_more is False
    assert page.first is None
    assert page.last is None


# ---------------------------------------------------------------------------
# PageParams
# ---------------------------------------------------------------------------


def test_page_params_defaults() -> None:
    params = PageParams()
    assert params.after is None
    assert params.before is None
    assert params.limit == 50


def test_page_params_rejects_both_cursors() -> None:
    with pytest.raises(ValidationError, match="Cannot use both after and before cursors"):
        PageParams(after="a", before="b")


@pytest.mark.parametrize("limit", [0, 101])
def test_page_params_limit_bounds(limit: int) -> None:
    with pytest.raises(ValidationError):
        PageParams(limit=limit)


def test_version_page_params_are_integers() -> None:
    params = VersionPageParams(after="12")
    assert params.after == 12
    with pytest.raises(ValidationError):
        VersionPageParams(before="latest")


# ---------------------------------------------------------------------------
# paginate
# ---------------------------------------------------------------------------


class _Result:
    def __init__(self, rows: list[Any]) -> None:
        self._rows = rows

    def scalars(self) -> _Result:
        return self

    def all(self) -> list[Any]:
        return self._rows


class _RecordingSession:
    """Stands in for AsyncSession: records the statement, returns fixed rows."""

    def __init__(self, rows: list[Any]) -> None:
        self.rows = rows
        self.statements: list[str] = []

    async def execute(self, stmt: Any) -> _Result:
        compiled = stmt.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True})
        self.statements.append(str(compiled))
        return _Result(self.rows)


async def test_paginate_rejects_both_cursors() -> None:
    params = PageParams.model_construct(after="a", before="b", limit=10)
    with pytest.raises(BadRequestError):
        await paginate(None, select(Category), key=Category.id, params=params)  # type: ignore[arg-type]


async def test_paginate_first_page_sql() -> None:
    db = _RecordingSession([Category(id="c3", name="x"), Category(id="c2", name="y")])
    page = await paginate(db, select(Category), key=Category.id, params=PageParams(limit=1))  # type: ignore[arg-type]

    sql = db.statements[0]
    assert "ORDER BY categories.id DESC" in sql
    assert "LIMIT 2" in sql
    assert [item.id for item in page.items] == ["c3"]
    assert page.has_more is True
    assert page.last == "c3"


async def test_paginate_after_cursor_sql() -> None:
    db = _RecordingSession([])
    await paginate(db, select(Category), key=Category.id, params=PageParams(after="c5"))  # type: ignore[arg-type]

    sql = db.statements[0]
    assert "categories.id < 'c5'" in sql
    assert "ORDER BY categories.id DESC" in sql


async def test_paginate_before_cursor_sql() -> None:
    db = _RecordingSession([Category(id="c6", name="a"), Category(id="c7", name="b")])
    page = await paginate(
        db,  # type: ignore[arg-type]
        select(Category),
        key=Category.id,
        params=PageParams(before="c5", limit=5),
    )

    sql = db.statements[0]
    assert "categories.id > 'c5'" in sql
    assert "ORDER BY categories.id ASC" in sql
    assert [item.id for item in page.items] == ["c7", "c6"]
    assert page.has_more is False
