"""
Filter builder for article listings.

A listing request names one of four modes; ``build_predicate`` turns it
into a ``Predicate`` that the pager applies, unchanged, to both the count
query and the page query.  Identities passed in here are already
resolved: callers look up usernames (and raise NotFound) first.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from sqlalchemy import ColumnElement, Select, String, column, false, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import Article, Favourite, Follow


# ---------------------------------------------------------------------------
# Listing modes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ByAuthor:
    author_id: int


@dataclass(frozen=True)
class Feed:
    viewer_id: int


@dataclass(frozen=True)
class Search:
    title: str | None = None
    tags: str | None = None


@dataclass(frozen=True)
class ByFavourite:
    user_id: int


ListingMode = Union[ByAuthor, Feed, Search, ByFavourite]


# ---------------------------------------------------------------------------
# Predicate
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class Predicate:
    """
    Storage-layer filter for a listing.

    ``criteria`` are conditions on ``Article``.  When ``favourites_of`` is
    set the listing is driven by that user's favourite records, joined to
    their articles.
    """

    criteria: tuple[ColumnElement[bool], ...] = ()
    favourites_of: int | None = None

    def apply(self, stmt: Select) -> Select:
        """Return *stmt* (selecting from ``Article``) narrowed by this predicate."""
        if self.favourites_of is not None:
            stmt = stmt.join(Favourite, Favourite.article_id == Article.id).where(
                Favourite.user_id == self.favourites_of
            )
        if self.criteria:
            stmt = stmt.where(*self.criteria)
        return stmt


MATCH_NOTHING = Predicate(criteria=(false(),))


def _icontains(col, term: str) -> ColumnElement[bool]:
    # LIKE wildcards in user input are escaped by autoescape.
    return col.icontains(term, autoescape=True)


def _any_tag_contains(dialect: str, term: str) -> ColumnElement[bool]:
    """
    True when some element of ``Article.tags`` contains *term*.

    Each tag is unpacked from the JSON array with the backend's set-returning
    function, so matches never span two tags or the JSON punctuation, and
    non-ASCII tags are compared as text rather than as ``\\u`` escapes.
    """
    if dialect == "postgresql":
        elements = func.json_array_elements_text(Article.tags)
    else:
        elements = func.json_each(Article.tags)
    tag = elements.table_valued(column("value", String), name="tag")
    return select(tag.c.value).where(_icontains(tag.c.value, term)).exists()


def _clean(term: str | None) -> str | None:
    if term is None:
        return None
    term = term.strip()
    return term or None


async def followed_author_ids(db: AsyncSession, viewer_id: int) -> list[int]:
    q = select(Follow.following_id).where(Follow.follower_id == viewer_id)
    return list((await db.execute(q)).scalars().all())


async def build_predicate(db: AsyncSession, mode: ListingMode) -> Predicate:
    """
    Translate *mode* into a ``Predicate``.

    Only ``Feed`` touches storage here (to read the viewer's follow set);
    ``Search`` asks the session which backend it talks to.
    """
    if isinstance(mode, ByAuthor):
        return Predicate(criteria=(Article.author_id == mode.author_id,))

    if isinstance(mode, Feed):
        following = await followed_author_ids(db, mode.viewer_id)
        if not following:
            return MATCH_NOTHING
        return Predicate(criteria=(Article.author_id.in_(following),))

    if isinstance(mode, Search):
        title, tags = _clean(mode.title), _clean(mode.tags)
        matches = []
        if title is not None:
            matches.append(_icontains(Article.title, title))
        if tags is not None:
            matches.append(_any_tag_contains(db.get_bind().dialect.name, tags))
        if not matches:
            return Predicate()
        return Predicate(criteria=(or_(*matches),))

    if isinstance(mode, ByFavourite):
        return Predicate(favourites_of=mode.user_id)

    raise TypeError(f"Unsupported listing mode: {mode!r}")
