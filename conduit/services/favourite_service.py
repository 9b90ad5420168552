"""
Favourite toggle.

``Article.favourite_count`` is a denormalized counter kept equal to the
number of ``Favourite`` rows for the article.  Each toggle writes the
relation row and shifts the counter inside one unit of work, so either
both changes commit or neither does.  The existence check guards against
double counting and negative counts; a concurrent toggle that slips past
the check is stopped by the ``(user_id, article_id)`` unique constraint
and reported as ``Conflict``.  Unfavourite removes the row with a single
``DELETE`` and only shifts the counter when exactly one row went away.
"""
import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import CacheManager
from conduit.database import unit_of_work
from conduit.exceptions import Conflict, NotFound, require_resource
from conduit.models import Article, Favourite
from conduit.schemas import EnrichedArticle
from conduit.services.enrichment import enrich

logger = logging.getLogger(__name__)


async def _get_article(db: AsyncSession, slug: str) -> Article:
    article = await db.scalar(select(Article).where(Article.slug == slug))
    return require_resource(article, "Article not found")


async def _find_favourite(db: AsyncSession, user_id: int, article_id: int) -> Favourite | None:
    return await db.scalar(
        select(Favourite).where(
            Favourite.user_id == user_id,
            Favourite.article_id == article_id,
        )
    )


async def _shift_favourite_count(db: AsyncSession, article_id: int, delta: int) -> None:
    # A negative result is rejected by ck_articles_favourite_count_non_negative.
    await db.execute(
        update(Article)
        .where(Article.id == article_id)
        .values(favourite_count=Article.favourite_count + delta)
    )


async def favourite(
    db: AsyncSession,
    viewer_id: int,
    slug: str,
    cache: CacheManager | None = None,
) -> EnrichedArticle:
    """
    Record that *viewer_id* favourites the article *slug*.

    Raises NotFound for an unknown slug and Conflict if the favourite
    already exists.  Returns the article with its updated count.
    """
    async with unit_of_work(db):
        article = await _get_article(db, slug)
        if await _find_favourite(db, viewer_id, article.id) is not None:
            raise Conflict("Article already favourited")
        db.add(Favourite(user_id=viewer_id, article_id=article.id))
        try:
            await db.flush()
        except IntegrityError as exc:
            raise Conflict("Article already favourited") from exc
        await _shift_favourite_count(db, article.id, +1)

    await db.refresh(article)
    logger.info("User %s favourited %s (count=%d)", viewer_id, slug, article.favourite_count)
    if cache is not None:
        await cache.invalidate_article(slug)
    return (await enrich(db, [article], viewer_id))[0]


async def unfavourite(
    db: AsyncSession,
    viewer_id: int,
    slug: str,
    cache: CacheManager | None = None,
) -> EnrichedArticle:
    """
    Remove *viewer_id*'s favourite of the article *slug*.

    Raises NotFound for an unknown slug or when no favourite exists.
    """
    async with unit_of_work(db):
        article = await _get_article(db, slug)
        # Zero rows matched means no favourite, even if one was seen earlier.
        removed = await db.execute(
            delete(Favourite).where(
                Favourite.user_id == viewer_id,
                Favourite.article_id == article.id,
            )
        )
        if removed.rowcount != 1:
            raise NotFound("Article is not favourited")
        await _shift_favourite_count(db, article.id, -1)

    await db.refresh(article)
    logger.info("User %s unfavourited %s (count=%d)", viewer_id, slug, article.favourite_count)
    if cache is not None:
        await cache.invalidate_article(slug)
    return (await enrich(db, [article], viewer_id))[0]
