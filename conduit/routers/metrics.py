from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import CacheManager, get_cache
from conduit.database import get_db
from conduit.models import Article, Comment, Favourite, Follow, User
from conduit.schemas import MetricsResponse

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()

@router.get("", response_model=MetricsResponse)
async def get_metrics(
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    total_articles = await _count(db, Article)
    total_favourites = await _count(db, Favourite)
    avg_favourites = total_favourites / total_articles if total_articles > 0 else 0

    return MetricsResponse(
        total_users=await _count(db, User),
        total_articles=total_articles,
        total_favourites=total_favourites,
        total_follows=await _count(db, Follow),
        total_comments=await _count(db, Comment),
        avg_favourites_per_article=round(avg_favourites, 2),
        cache_info=cache.stats,
    )
