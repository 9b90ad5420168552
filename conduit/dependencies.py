from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.exceptions import Unauthorized
from conduit.models import User
from conduit.services.pager import PageParams


def pagination_params(
    limit: str | None = Query(
        None,
        description=f"Articles per page (positive integer, default {settings.DEFAULT_PAGE_SIZE}).",
    ),
    page: str | None = Query(
        None,
        description="Page number (1-based, default 1).",
    ),
) -> PageParams:
    """
    Parse ``limit`` and ``page`` for listing endpoints.

    Both arrive as raw strings so malformed values are reported as
    ``InvalidQuery`` (400) by the pager rather than as FastAPI's generic
    422, and before any database work happens.
    """
    return PageParams.parse(limit, page, default_limit=settings.DEFAULT_PAGE_SIZE)


async def get_viewer_id(request: Request, db: AsyncSession = Depends(get_db)) -> int | None:
    """
    Return the authenticated user id injected by the upstream gateway.

    The header named by ``settings.VIEWER_HEADER`` is trusted as-is;
    token validation happens before the request reaches this service.
    An absent header means an anonymous viewer.  A malformed value or an
    id with no matching user is rejected with 401.
    """
    raw = request.headers.get(settings.VIEWER_HEADER)
    if raw is None or not raw.strip():
        return None
    try:
        viewer_id = int(raw)
    except ValueError:
        raise Unauthorized("Malformed viewer identity") from None
    if await db.get(User, viewer_id) is None:
        raise Unauthorized("Unknown viewer")
    return viewer_id


async def require_viewer_id(viewer_id: int | None = Depends(get_viewer_id)) -> int:
    if viewer_id is None:
        raise Unauthorized()
    return viewer_id
