"""
Article service: create, read, edit and delete single articles.

Design notes
------------
- Detail reads go through the cache-aside pattern (Redis, then DB).  Only
  the viewer-independent part is cached; the ``favourited`` flag is
  recomputed for every request with a single lookup.
- Slugs are derived from the title; a collision gets a short random
  suffix.  Editing the title regenerates the slug.
- Only the author may edit or delete an article (``Forbidden`` otherwise).
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency.
"""
import logging
import re
import uuid

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import CacheManager
from conduit.config import settings
from conduit.exceptions import Forbidden, InvalidQuery, require_resource
from conduit.models import Article, Comment, Favourite
from conduit.schemas import ArticleCreate, ArticleUpdate, EnrichedArticle
from conduit.services.enrichment import enrich, favourited_ids

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

_REQUIRED_FIELDS = ("title", "content")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-") or "article"


async def _unique_slug(db: AsyncSession, title: str, exclude_id: int | None = None) -> str:
    slug = slugify(title)
    q = select(Article.id).where(Article.slug == slug)
    if exclude_id is not None:
        q = q.where(Article.id != exclude_id)
    if await db.scalar(q) is not None:
        slug = f"{slug}-{uuid.uuid4().hex[:8]}"
    return slug


async def _get_article(db: AsyncSession, slug: str) -> Article:
    article = await db.scalar(select(Article).where(Article.slug == slug))
    return require_resource(article, "Article not found")


def _require_author(article: Article, viewer_id: int) -> None:
    if article.author_id != viewer_id:
        raise Forbidden("Only the author can modify this article")


async def _enrich_one(db: AsyncSession, article: Article, viewer_id: int | None) -> EnrichedArticle:
    return (await enrich(db, [article], viewer_id))[0]


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, author_id: int, data: ArticleCreate) -> EnrichedArticle:
    article = Article(
        title=data.title,
        slug=await _unique_slug(db, data.title),
        description=data.description,
        content=data.content,
        tags=list(data.tags),
        favourite_count=0,
        author_id=author_id,
    )
    db.add(article)
    await db.flush()
    logger.info("User %s created article %s", author_id, article.slug)
    return await _enrich_one(db, article, author_id)


async def get_article(
    db: AsyncSession,
    slug: str,
    viewer_id: int | None = None,
    cache: CacheManager | None = None,
) -> EnrichedArticle:
    """
    Return the article *slug* enriched for *viewer_id*.

    Raises NotFound when the article does not exist.
    """
    key = CacheManager.article_key(slug)
    cached = await cache.get(key) if cache is not None else None
    if cached:
        article = EnrichedArticle(**cached)
    else:
        article = await _enrich_one(db, await _get_article(db, slug), None)
        if cache is not None:
            await cache.set(key, article.model_dump(mode="json"), ttl=settings.CACHE_TTL_DETAIL)

    if viewer_id is not None:
        favourited = article.id in await favourited_ids(db, viewer_id, [article.id])
        article = article.model_copy(update={"favourited": favourited})
    return article


async def update_article(
    db: AsyncSession,
    slug: str,
    viewer_id: int,
    data: ArticleUpdate,
    cache: CacheManager | None = None,
) -> EnrichedArticle:
    """
    Partially update an article owned by *viewer_id*.

    Every field present in the payload is applied, including an explicit
    null (which clears ``description`` and empties ``tags``).  ``title``
    and ``content`` cannot be nulled.
    """
    article = await _get_article(db, slug)
    _require_author(article, viewer_id)

    update_data = data.model_dump(exclude_unset=True)
    for field in _REQUIRED_FIELDS:
        if field in update_data and update_data[field] is None:
            raise InvalidQuery(f"{field} cannot be null")
    if "tags" in update_data:
        update_data["tags"] = list(update_data["tags"] or [])

    if "title" in update_data:
        article.slug = await _unique_slug(db, update_data["title"], exclude_id=article.id)
    for field, value in update_data.items():
        setattr(article, field, value)

    await db.flush()
    await db.refresh(article)
    if cache is not None:
        await cache.invalidate_article(slug, article.slug)
    logger.info("User %s updated article %s", viewer_id, article.slug)
    return await _enrich_one(db, article, viewer_id)


async def delete_article(
    db: AsyncSession,
    slug: str,
    viewer_id: int,
    cache: CacheManager | None = None,
) -> None:
    article = await _get_article(db, slug)
    _require_author(article, viewer_id)

    # Relation rows go explicitly; not every backend enforces ON DELETE CASCADE.
    await db.execute(delete(Favourite).where(Favourite.article_id == article.id))
    await db.execute(delete(Comment).where(Comment.article_id == article.id))
    await db.delete(article)
    await db.flush()
    if cache is not None:
        await cache.invalidate_article(slug)
    logger.info("User %s deleted article %s", viewer_id, slug)
