from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import CacheManager, get_cache
from conduit.database import get_db
from conduit.dependencies import get_viewer_id, pagination_params, require_viewer_id
from conduit.schemas import (
    ArticleCreate,
    ArticleUpdate,
    CommentCreate,
    CommentResponse,
    EnrichedArticle,
    PagedResult,
)
from conduit.services import (
    article_service,
    comment_service,
    favourite_service,
    listing_service,
)
from conduit.services.pager import PageParams

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

# Listings (declared before /{slug} so the literal paths win)

@router.get("/feed", response_model=PagedResult[EnrichedArticle])
async def feed(
    params: PageParams = Depends(pagination_params),
    viewer_id: int = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await listing_service.feed(db, viewer_id, params)

@router.get("/search", response_model=PagedResult[EnrichedArticle])
async def search(
    params: PageParams = Depends(pagination_params),
    title: str | None = Query(None, description="Case-insensitive substring of the title."),
    tags: str | None = Query(None, description="Case-insensitive substring of any tag."),
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await listing_service.search(db, title, tags, viewer_id, params)

# Single articles

@router.post("", status_code=201, response_model=EnrichedArticle)
async def create_article(
    data: ArticleCreate,
    viewer_id: int = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, viewer_id, data)

@router.get("/{slug}", response_model=EnrichedArticle)
async def get_article(
    slug: str,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return await article_service.get_article(db, slug, viewer_id, cache)

@router.put("/{slug}", response_model=EnrichedArticle)
async def update_article(
    slug: str,
    data: ArticleUpdate,
    viewer_id: int = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return await article_service.update_article(db, slug, viewer_id, data, cache)

@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    viewer_id: int = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    await article_service.delete_article(db, slug, viewer_id, cache)

# Favourite toggle

@router.post("/{slug}/favourite", response_model=EnrichedArticle)
async def favourite_article(
    slug: str,
    viewer_id: int = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return await favourite_service.favourite(db, viewer_id, slug, cache)

@router.delete("/{slug}/favourite", response_model=EnrichedArticle)
async def unfavourite_article(
    slug: str,
    viewer_id: int = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return await favourite_service.unfavourite(db, viewer_id, slug, cache)

# Comments

@router.get("/{slug}/comments", response_model=list[CommentResponse])
async def list_comments(slug: str, db: AsyncSession = Depends(get_db)):
    return await comment_service.list_comments(db, slug)

@router.post("/{slug}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    slug: str,
    data: CommentCreate,
    viewer_id: int = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.add_comment(db, slug, viewer_id, data)

@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    viewer_id: int = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, slug, comment_id, viewer_id)
