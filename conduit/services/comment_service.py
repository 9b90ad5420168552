"""
Comment service: comments attached to an article by slug.

Comments cannot be edited; the author may delete their own.  Listing
returns every comment of the article, newest first, with the author
summary embedded.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import Forbidden, NotFound, require_resource
from conduit.models import Article, Comment, User
from conduit.schemas import AuthorSummary, CommentCreate, CommentResponse
from conduit.services.enrichment import load_authors

logger = logging.getLogger(__name__)


def _to_response(comment: Comment, author: User) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        body=comment.body,
        article_id=comment.article_id,
        created_at=comment.created_at,
        author=AuthorSummary.model_validate(author),
    )


async def _article_id(db: AsyncSession, slug: str) -> int:
    article_id = await db.scalar(select(Article.id).where(Article.slug == slug))
    return require_resource(article_id, "Article not found")


async def add_comment(
    db: AsyncSession,
    slug: str,
    author_id: int,
    data: CommentCreate,
) -> CommentResponse:
    comment = Comment(body=data.body, article_id=await _article_id(db, slug), author_id=author_id)
    db.add(comment)
    await db.flush()
    author = await db.get(User, author_id)
    logger.info("User %s commented on %s", author_id, slug)
    return _to_response(comment, author)


async def list_comments(db: AsyncSession, slug: str) -> list[CommentResponse]:
    article_id = await _article_id(db, slug)
    q = (
        select(Comment)
        .where(Comment.article_id == article_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    comments = (await db.execute(q)).scalars().all()
    authors = await load_authors(db, (c.author_id for c in comments))
    return [_to_response(c, authors[c.author_id]) for c in comments]


async def delete_comment(db: AsyncSession, slug: str, comment_id: int, viewer_id: int) -> None:
    article_id = await _article_id(db, slug)
    comment = await db.get(Comment, comment_id)
    if comment is None or comment.article_id != article_id:
        raise NotFound("Comment not found")
    if comment.author_id != viewer_id:
        raise Forbidden("Only the author can delete this comment")
    await db.delete(comment)
    await db.flush()
    logger.info("User %s deleted comment %s on %s", viewer_id, comment_id, slug)
