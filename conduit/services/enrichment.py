"""
Enrichment of raw article rows into ``EnrichedArticle`` responses.

Authors and the viewer's favourite flags for a whole page are loaded with
one query each, so enriching N articles costs two statements, not 2N.
Read-only; output order is input order.
"""
from __future__ import annotations

from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import Article, Favourite, User
from conduit.schemas import ArticleResponse, AuthorSummary, EnrichedArticle


async def favourited_ids(
    db: AsyncSession, viewer_id: int | None, article_ids: Iterable[int]
) -> set[int]:
    """Return the subset of *article_ids* the viewer has favourited."""
    article_ids = list(article_ids)
    if viewer_id is None or not article_ids:
        return set()
    q = select(Favourite.article_id).where(
        Favourite.user_id == viewer_id,
        Favourite.article_id.in_(article_ids),
    )
    return set((await db.execute(q)).scalars().all())


async def load_authors(db: AsyncSession, author_ids: Iterable[int]) -> dict[int, User]:
    author_ids = set(author_ids)
    if not author_ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(author_ids)))
    return {user.id: user for user in result.scalars().all()}


def to_enriched(article: Article, author: User, favourited: bool) -> EnrichedArticle:
    base = ArticleResponse.model_validate(article)
    return EnrichedArticle(
        **base.model_dump(),
        author=AuthorSummary.model_validate(author),
        favourited=favourited,
    )


async def enrich(
    db: AsyncSession, articles: Sequence[Article], viewer_id: int | None
) -> list[EnrichedArticle]:
    if not articles:
        return []
    authors = await load_authors(db, (a.author_id for a in articles))
    favourites = await favourited_ids(db, viewer_id, (a.id for a in articles))
    return [
        to_enriched(article, authors[article.author_id], article.id in favourites)
        for article in articles
    ]
