"""
Pagination for article listings.

``PageParams.parse`` validates the raw ``limit``/``page`` query values
before any storage access.  ``count`` and ``fetch_page`` are two separate
reads; under concurrent writes they may not observe the same snapshot, so
``total_results`` and the returned slice can disagree slightly.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.exceptions import InvalidQuery
from conduit.models import Article
from conduit.services.filters import Predicate

DEFAULT_PAGE = 1


def _parse_int(name: str, raw: str | int | None, default: int) -> int:
    if raw is None:
        return default
    if isinstance(raw, int):
        return raw
    raw = raw.strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidQuery(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class PageParams:
    limit: int
    page: int

    @classmethod
    def parse(
        cls,
        limit: str | int | None = None,
        page: str | int | None = None,
        default_limit: int | None = None,
    ) -> "PageParams":
        """
        Build validated page parameters from raw query values.

        Absent or blank values fall back to the defaults.  Non-numeric
        values, ``limit <= 0`` and ``page < 1`` raise ``InvalidQuery``.
        There is no upper bound on ``limit``.
        """
        if default_limit is None:
            default_limit = settings.DEFAULT_PAGE_SIZE
        limit_value = _parse_int("limit", limit, default_limit)
        page_value = _parse_int("page", page, DEFAULT_PAGE)
        if limit_value <= 0:
            raise InvalidQuery("limit must be a positive integer")
        if page_value < 1:
            raise InvalidQuery("page must be 1 or greater")
        return cls(limit=limit_value, page=page_value)

    @property
    def skip(self) -> int:
        return self.limit * (self.page - 1)


def total_pages(total_results: int, limit: int) -> int:
    if limit == 0:
        raise InvalidQuery("limit must be a positive integer")
    return math.ceil(total_results / limit)


async def count(db: AsyncSession, predicate: Predicate) -> int:
    q = predicate.apply(select(func.count()).select_from(Article))
    return (await db.execute(q)).scalar_one()


async def fetch_page(db: AsyncSession, predicate: Predicate, params: PageParams) -> Sequence[Article]:
    """Return one page of articles, newest first (id breaks created_at ties)."""
    q = (
        predicate.apply(select(Article))
        .order_by(Article.created_at.desc(), Article.id.desc())
        .offset(params.skip)
        .limit(params.limit)
    )
    return (await db.execute(q)).scalars().all()
