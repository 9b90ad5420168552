"""
User service: accounts, public profiles and the follow graph.

Follow and unfollow pair the relation write with the denormalized
``follower_count``/``following_count`` updates in one unit of work, the
same way the favourite toggle handles ``favourite_count``.
"""
import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import unit_of_work
from conduit.exceptions import Conflict, InvalidQuery, NotFound, require_resource
from conduit.models import Follow, User
from conduit.schemas import Profile, UserCreate, UserResponse

logger = logging.getLogger(__name__)


async def create_user(db: AsyncSession, data: UserCreate) -> UserResponse:
    """
    Create a new user.

    Username and email uniqueness is enforced by the database; a
    violation surfaces as ``Conflict``.
    """
    user = User(**data.model_dump())
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise Conflict("A user with this username or email already exists") from exc
    logger.info("Created user %s (id=%s)", user.username, user.id)
    return UserResponse.model_validate(user)


async def get_user_by_username(db: AsyncSession, username: str) -> User:
    user = await db.scalar(select(User).where(User.username == username))
    return require_resource(user, "User not found")


async def resolve_username(db: AsyncSession, username: str) -> int:
    """Return the id of *username*, or raise NotFound."""
    user_id = await db.scalar(select(User.id).where(User.username == username))
    return require_resource(user_id, "User not found")


async def _find_follow(db: AsyncSession, follower_id: int, following_id: int) -> Follow | None:
    return await db.scalar(
        select(Follow).where(
            Follow.follower_id == follower_id,
            Follow.following_id == following_id,
        )
    )


def _to_profile(user: User, following: bool) -> Profile:
    return Profile(
        id=user.id,
        username=user.username,
        name=user.name,
        bio=user.bio,
        image=user.image,
        follower_count=user.follower_count,
        following_count=user.following_count,
        following=following,
    )


async def get_profile(db: AsyncSession, username: str, viewer_id: int | None) -> Profile:
    user = await get_user_by_username(db, username)
    following = False
    if viewer_id is not None and viewer_id != user.id:
        following = await _find_follow(db, viewer_id, user.id) is not None
    return _to_profile(user, following)


async def _shift_follow_counts(db: AsyncSession, follower_id: int, following_id: int, delta: int) -> None:
    await db.execute(
        update(User)
        .where(User.id == follower_id)
        .values(following_count=User.following_count + delta)
    )
    await db.execute(
        update(User)
        .where(User.id == following_id)
        .values(follower_count=User.follower_count + delta)
    )


async def follow(db: AsyncSession, viewer_id: int, username: str) -> Profile:
    async with unit_of_work(db):
        target = await get_user_by_username(db, username)
        if target.id == viewer_id:
            raise InvalidQuery("Users cannot follow themselves")
        if await _find_follow(db, viewer_id, target.id) is not None:
            raise Conflict(f"Already following {username}")
        db.add(Follow(follower_id=viewer_id, following_id=target.id))
        try:
            await db.flush()
        except IntegrityError as exc:
            raise Conflict(f"Already following {username}") from exc
        await _shift_follow_counts(db, viewer_id, target.id, +1)

    await db.refresh(target)
    logger.info("User %s followed %s", viewer_id, username)
    return _to_profile(target, following=True)


async def unfollow(db: AsyncSession, viewer_id: int, username: str) -> Profile:
    async with unit_of_work(db):
        target = await get_user_by_username(db, username)
        removed = await db.execute(
            delete(Follow).where(
                Follow.follower_id == viewer_id,
                Follow.following_id == target.id,
            )
        )
        if removed.rowcount != 1:
            raise NotFound(f"Not following {username}")
        await _shift_follow_counts(db, viewer_id, target.id, -1)

    await db.refresh(target)
    logger.info("User %s unfollowed %s", viewer_id, username)
    return _to_profile(target, following=False)
