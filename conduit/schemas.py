from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


# --- User / profile ---

class UserBase(BaseModel):
    username: str = Field(max_length=50)
    email: str = Field(max_length=255)
    name: str | None = None
    bio: str | None = None
    image: str | None = None


class UserCreate(UserBase):
    pass


class UserResponse(UserBase):
    id: int
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuthorSummary(BaseModel):
    """Public author fields embedded in every listed article."""

    id: int
    username: str
    name: str | None = None
    bio: str | None = None
    image: str | None = None
    model_config = ConfigDict(from_attributes=True)


class Profile(AuthorSummary):
    follower_count: int
    following_count: int
    following: bool = False


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(None, max_length=500)
    content: str
    tags: list[str] = []


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=500)
    content: str | None = None
    tags: list[str] | None = None


class ArticleResponse(BaseModel):
    id: int
    title: str
    slug: str
    description: str | None = None
    content: str
    tags: list[str] = []
    favourite_count: int
    created_at: datetime
    updated_at: datetime | None = None
    author_id: int
    model_config = ConfigDict(from_attributes=True)


class EnrichedArticle(ArticleResponse):
    """Article plus author summary and the viewer-relative favourite flag."""

    author: AuthorSummary
    favourited: bool = False


# --- Comment ---

class CommentCreate(BaseModel):
    body: str = Field(min_length=1)


class CommentResponse(BaseModel):
    id: int
    body: str
    article_id: int
    created_at: datetime
    author: AuthorSummary


# --- Pagination ---

class PagedResult(BaseModel, Generic[T]):
    total_results: int
    total_pages: int
    page: int
    results: list[T]


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_users: int
    total_articles: int
    total_favourites: int
    total_follows: int
    total_comments: int
    avg_favourites_per_article: float
    cache_info: dict = {}
