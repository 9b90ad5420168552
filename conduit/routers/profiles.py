from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import get_viewer_id, pagination_params, require_viewer_id
from conduit.schemas import EnrichedArticle, PagedResult, Profile
from conduit.services import listing_service, user_service
from conduit.services.pager import PageParams

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])

@router.get("/{username}", response_model=Profile)
async def get_profile(
    username: str,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_profile(db, username, viewer_id)

@router.post("/{username}/follow", response_model=Profile)
async def follow(
    username: str,
    viewer_id: int = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.follow(db, viewer_id, username)

@router.delete("/{username}/follow", response_model=Profile)
async def unfollow(
    username: str,
    viewer_id: int = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.unfollow(db, viewer_id, username)

@router.get("/{username}/articles", response_model=PagedResult[EnrichedArticle])
async def articles_by_author(
    username: str,
    params: PageParams = Depends(pagination_params),
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await listing_service.articles_by_author(db, username, viewer_id, params)

@router.get("/{username}/favourites", response_model=PagedResult[EnrichedArticle])
async def favourites_of(
    username: str,
    params: PageParams = Depends(pagination_params),
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await listing_service.favourites_of(db, username, viewer_id, params)
