"""
Listing service: the one aggregation pipeline behind every article list.

Design notes
------------
- Feed, by-author, by-favourite and search listings share a single
  shape: filter -> count -> slice -> enrich -> paginate.  Only the
  predicate differs, so ``run`` takes a ``ListingMode`` and the four
  public functions just choose the mode.
- ``PageParams`` arrives already validated (``PageParams.parse`` runs in
  the request dependency), so malformed ``limit``/``page`` values are
  rejected before any statement is issued.
- Count and slice are two independent reads.  Under concurrent writes
  ``total_results`` may disagree with the slice by a few rows; listings
  tolerate that and no snapshot isolation is requested.
- Username lookups for by-author and by-favourite raise ``NotFound``
  before the filter builder runs.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from conduit.schemas import EnrichedArticle, PagedResult
from conduit.services import user_service
from conduit.services.enrichment import enrich
from conduit.services.filters import (
    ByAuthor,
    ByFavourite,
    Feed,
    ListingMode,
    Search,
    build_predicate,
)
from conduit.services.pager import PageParams, count, fetch_page, total_pages

logger = logging.getLogger(__name__)


async def run(
    db: AsyncSession,
    mode: ListingMode,
    viewer_id: int | None,
    params: PageParams,
) -> PagedResult[EnrichedArticle]:
    predicate = await build_predicate(db, mode)
    total_results = await count(db, predicate)
    articles = await fetch_page(db, predicate, params)
    results = await enrich(db, articles, viewer_id)
    logger.debug(
        "Listing %r page=%d limit=%d -> %d of %d",
        mode, params.page, params.limit, len(results), total_results,
    )
    return PagedResult[EnrichedArticle](
        total_results=total_results,
        total_pages=total_pages(total_results, params.limit),
        page=params.page,
        results=results,
    )


async def feed(db: AsyncSession, viewer_id: int, params: PageParams) -> PagedResult[EnrichedArticle]:
    """Articles written by the users *viewer_id* follows."""
    return await run(db, Feed(viewer_id), viewer_id, params)


async def articles_by_author(
    db: AsyncSession, username: str, viewer_id: int | None, params: PageParams
) -> PagedResult[EnrichedArticle]:
    author_id = await user_service.resolve_username(db, username)
    return await run(db, ByAuthor(author_id), viewer_id, params)


async def favourites_of(
    db: AsyncSession, username: str, viewer_id: int | None, params: PageParams
) -> PagedResult[EnrichedArticle]:
    """Articles favourited by *username*; ``favourited`` is still relative to the viewer."""
    user_id = await user_service.resolve_username(db, username)
    return await run(db, ByFavourite(user_id), viewer_id, params)


async def search(
    db: AsyncSession,
    title: str | None,
    tags: str | None,
    viewer_id: int | None,
    params: PageParams,
) -> PagedResult[EnrichedArticle]:
    return await run(db, Search(title=title, tags=tags), viewer_id, params)
