"""
Listing pipeline tests: filter builder, enrichment and pagination through
the four public listings (feed, by-author, by-favourite, search).

Articles are seeded directly through the ORM with explicit, spaced
``created_at`` values so the expected newest-first order is unambiguous.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import NotFound
from conduit.models import Article, Comment, Favourite, Follow, User
from conduit.services import favourite_service, listing_service
from conduit.services.article_service import slugify
from conduit.services.enrichment import enrich
from conduit.services.filters import (
    MATCH_NOTHING,
    ByFavourite,
    Feed,
    Search,
    build_predicate,
)
from conduit.services.pager import PageParams, count, fetch_page

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_user(db: AsyncSession, username: str) -> int:
    user = User(username=username, email=f"{username}@example.com", name=username.title(), bio="Writes things")
    db.add(user)
    await db.flush()
    return user.id


async def _create_article(
    db: AsyncSession,
    author_id: int,
    title: str,
    minutes: int = 0,
    tags: tuple[str, ...] = (),
) -> int:
    article = Article(
        title=title,
        slug=slugify(title),
        content=f"Content of {title}",
        tags=list(tags),
        favourite_count=0,
        author_id=author_id,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )
    db.add(article)
    await db.flush()
    return article.id


async def _follow(db: AsyncSession, follower_id: int, following_id: int) -> None:
    db.add(Follow(follower_id=follower_id, following_id=following_id))
    await db.flush()


def _params(limit: int = 10, page: int = 1) -> PageParams:
    return PageParams.parse(limit, page)


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_feed_following_nobody_is_empty(db_session: AsyncSession):
    viewer_id = await _create_user(db_session, "lonely")
    other_id = await _create_user(db_session, "writer")
    await _create_article(db_session, other_id, "Unseen")

    result = await listing_service.feed(db_session, viewer_id, _params())
    assert result.total_results == 0
    assert result.total_pages == 0
    assert result.page == 1
    assert result.results == []


@pytest.mark.asyncio
async def test_feed_predicate_matches_nothing_without_follows(db_session: AsyncSession):
    viewer_id = await _create_user(db_session, "nofollows")
    assert await build_predicate(db_session, Feed(viewer_id)) is MATCH_NOTHING


@pytest.mark.asyncio
async def test_feed_contains_only_followed_authors_newest_first(db_session: AsyncSession):
    viewer_id = await _create_user(db_session, "reader")
    followed_a = await _create_user(db_session, "alice")
    followed_b = await _create_user(db_session, "bob")
    stranger = await _create_user(db_session, "carol")
    await _follow(db_session, viewer_id, followed_a)
    await _follow(db_session, viewer_id, followed_b)

    await _create_article(db_session, followed_a, "Alice Old", minutes=1)
    await _create_article(db_session, stranger, "Carol Post", minutes=2)
    await _create_article(db_session, followed_b, "Bob Post", minutes=3)
    await _create_article(db_session, followed_a, "Alice New", minutes=4)
    await _create_article(db_session, viewer_id, "Own Post", minutes=5)

    result = await listing_service.feed(db_session, viewer_id, _params())
    assert result.total_results == 3
    assert [a.title for a in result.results] == ["Alice New", "Bob Post", "Alice Old"]
    assert {a.author.username for a in result.results} == {"alice", "bob"}


@pytest.mark.asyncio
async def test_feed_pagination_slices_and_counts(db_session: AsyncSession):
    viewer_id = await _create_user(db_session, "pager")
    author_id = await _create_user(db_session, "prolific")
    await _follow(db_session, viewer_id, author_id)
    for i in range(5):
        await _create_article(db_session, author_id, f"Post {i}", minutes=i)

    result = await listing_service.feed(db_session, viewer_id, _params(limit=2, page=2))
    assert result.total_results == 5
    assert result.total_pages == 3
    assert result.page == 2
    assert [a.title for a in result.results] == ["Post 2", "Post 1"]

    last = await listing_service.feed(db_session, viewer_id, _params(limit=2, page=3))
    assert [a.title for a in last.results] == ["Post 0"]


@pytest.mark.asyncio
async def test_page_beyond_last_is_echoed_with_empty_results(db_session: AsyncSession):
    viewer_id = await _create_user(db_session, "faraway")
    author_id = await _create_user(db_session, "few")
    await _follow(db_session, viewer_id, author_id)
    await _create_article(db_session, author_id, "Only One")

    result = await listing_service.feed(db_session, viewer_id, _params(limit=10, page=7))
    assert result.page == 7
    assert result.total_results == 1
    assert result.total_pages == 1
    assert result.results == []


# ---------------------------------------------------------------------------
# By author
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_articles_by_author(db_session: AsyncSession):
    author_id = await _create_user(db_session, "author")
    other_id = await _create_user(db_session, "someone")
    await _create_article(db_session, author_id, "First", minutes=1)
    await _create_article(db_session, other_id, "Not Mine", minutes=2)
    await _create_article(db_session, author_id, "Second", minutes=3)

    result = await listing_service.articles_by_author(db_session, "author", None, _params())
    assert result.total_results == 2
    assert [a.title for a in result.results] == ["Second", "First"]
    assert all(a.author.id == author_id for a in result.results)
    assert all(a.favourited is False for a in result.results)


@pytest.mark.asyncio
async def test_articles_by_unknown_author_not_found(db_session: AsyncSession):
    with pytest.raises(NotFound):
        await listing_service.articles_by_author(db_session, "ghost", None, _params())


# ---------------------------------------------------------------------------
# By favourite
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favourites_of_user(db_session: AsyncSession):
    author_id = await _create_user(db_session, "writer")
    fan_id = await _create_user(db_session, "fan")
    viewer_id = await _create_user(db_session, "onlooker")
    await _create_article(db_session, author_id, "Liked Old", minutes=1)
    await _create_article(db_session, author_id, "Ignored", minutes=2)
    await _create_article(db_session, author_id, "Liked New", minutes=3)

    await favourite_service.favourite(db_session, fan_id, "liked-old")
    await favourite_service.favourite(db_session, fan_id, "liked-new")
    await favourite_service.favourite(db_session, viewer_id, "liked-new")

    result = await listing_service.favourites_of(db_session, "fan", viewer_id, _params())
    assert result.total_results == 2
    assert [a.title for a in result.results] == ["Liked New", "Liked Old"]
    # The flag is relative to the viewer, not to the listed user.
    assert [a.favourited for a in result.results] == [True, False]


@pytest.mark.asyncio
async def test_favourites_predicate_joins_favourite_records(db_session: AsyncSession):
    user_id = await _create_user(db_session, "joiner")
    predicate = await build_predicate(db_session, ByFavourite(user_id))
    assert predicate.favourites_of == user_id
    assert predicate.criteria == ()


@pytest.mark.asyncio
async def test_favourites_of_unknown_user_not_found(db_session: AsyncSession):
    with pytest.raises(NotFound):
        await listing_service.favourites_of(db_session, "ghost", None, _params())


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_search_without_filters_returns_everything_sorted(db_session: AsyncSession):
    a = await _create_user(db_session, "searcher_a")
    b = await _create_user(db_session, "searcher_b")
    for i in range(4):
        await _create_article(db_session, a if i % 2 else b, f"Entry {i}", minutes=10 - i)

    result = await listing_service.search(db_session, None, None, None, _params())
    expected = (
        await db_session.execute(select(Article.id).order_by(Article.created_at.desc(), Article.id.desc()))
    ).scalars().all()
    assert result.total_results == 4
    assert [r.id for r in result.results] == list(expected)


@pytest.mark.asyncio
async def test_search_blank_terms_count_as_absent(db_session: AsyncSession):
    author_id = await _create_user(db_session, "blank")
    await _create_article(db_session, author_id, "Anything")

    result = await listing_service.search(db_session, "  ", "", None, _params())
    assert result.total_results == 1


@pytest.mark.asyncio
async def test_search_tags_case_insensitive(db_session: AsyncSession):
    author_id = await _create_user(db_session, "tagger")
    await _create_article(db_session, author_id, "Go Services", minutes=1, tags=("go", "backend"))
    await _create_article(db_session, author_id, "Snakes", minutes=2, tags=("python",))
    await _create_article(db_session, author_id, "Shouting", minutes=3, tags=("GO",))

    result = await listing_service.search(db_session, None, "go", None, _params())
    assert [a.title for a in result.results] == ["Shouting", "Go Services"]

    upper = await listing_service.search(db_session, None, "GO", None, _params())
    assert upper.total_results == 2


@pytest.mark.asyncio
async def test_search_tags_non_ascii(db_session: AsyncSession):
    author_id = await _create_user(db_session, "barista")
    await _create_article(db_session, author_id, "Morning", minutes=1, tags=("café", "naïve"))
    await _create_article(db_session, author_id, "Evening", minutes=2, tags=("cafe",))

    result = await listing_service.search(db_session, None, "café", None, _params())
    assert [a.title for a in result.results] == ["Morning"]

    partial = await listing_service.search(db_session, None, "ïv", None, _params())
    assert [a.title for a in partial.results] == ["Morning"]


@pytest.mark.asyncio
async def test_search_tags_matches_within_single_tag(db_session: AsyncSession):
    author_id = await _create_user(db_session, "boundary")
    await _create_article(db_session, author_id, "Split", minutes=1, tags=("data", "base"))
    await _create_article(db_session, author_id, "Whole", minutes=2, tags=("database",))

    result = await listing_service.search(db_session, None, "database", None, _params())
    assert [a.title for a in result.results] == ["Whole"]

    for punctuation in ('"', ",", "[", "\\"):
        none = await listing_service.search(db_session, None, punctuation, None, _params())
        assert none.total_results == 0, punctuation


@pytest.mark.asyncio
async def test_search_title_substring_case_insensitive(db_session: AsyncSession):
    author_id = await _create_user(db_session, "titler")
    await _create_article(db_session, author_id, "Async Python Patterns", minutes=1)
    await _create_article(db_session, author_id, "Rust Ownership", minutes=2)

    result = await listing_service.search(db_session, "python", None, None, _params())
    assert [a.title for a in result.results] == ["Async Python Patterns"]


@pytest.mark.asyncio
async def test_search_title_or_tags(db_session: AsyncSession):
    author_id = await _create_user(db_session, "either")
    await _create_article(db_session, author_id, "Databases", minutes=1, tags=("sql",))
    await _create_article(db_session, author_id, "Caching", minutes=2, tags=("redis",))
    await _create_article(db_session, author_id, "Frontend", minutes=3, tags=("css",))

    result = await listing_service.search(db_session, "databases", "redis", None, _params())
    assert [a.title for a in result.results] == ["Caching", "Databases"]


@pytest.mark.asyncio
async def test_search_escapes_like_wildcards(db_session: AsyncSession):
    author_id = await _create_user(db_session, "literal")
    await _create_article(db_session, author_id, "100% Uptime", minutes=1)
    await _create_article(db_session, author_id, "Plain Title", minutes=2)

    result = await listing_service.search(db_session, "%", None, None, _params())
    assert [a.title for a in result.results] == ["100% Uptime"]


@pytest.mark.asyncio
async def test_search_predicate_is_shared_by_count_and_fetch(db_session: AsyncSession):
    author_id = await _create_user(db_session, "shared")
    for i in range(3):
        await _create_article(db_session, author_id, f"Match {i}", minutes=i)
    await _create_article(db_session, author_id, "Other", minutes=9)

    predicate = await build_predicate(db_session, Search(title="match"))
    assert await count(db_session, predicate) == 3
    assert len(await fetch_page(db_session, predicate, _params())) == 3


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("model", [User, Article, Comment])
def test_models_declare_no_relationships(model):
    # Authors reach a listing only through the batched enrichment lookup.
    assert not inspect(model).relationships


@pytest.mark.asyncio
async def test_enrichment_flags_and_author_summary(db_session: AsyncSession):
    author_id = await _create_user(db_session, "enriched")
    viewer_id = await _create_user(db_session, "looker")
    liked_id = await _create_article(db_session, author_id, "Liked", minutes=1)
    await _create_article(db_session, author_id, "Not Liked", minutes=2)
    db_session.add(Favourite(user_id=viewer_id, article_id=liked_id))
    await db_session.flush()

    articles = (await db_session.execute(select(Article).order_by(Article.id))).scalars().all()

    as_viewer = await enrich(db_session, articles, viewer_id)
    assert {a.title: a.favourited for a in as_viewer} == {"Liked": True, "Not Liked": False}
    author = as_viewer[0].author
    assert (author.id, author.username, author.name, author.bio) == (author_id, "enriched", "Enriched", "Writes things")

    anonymous = await enrich(db_session, articles, None)
    assert all(a.favourited is False for a in anonymous)


@pytest.mark.asyncio
async def test_enrichment_preserves_input_order(db_session: AsyncSession):
    a = await _create_user(db_session, "order_a")
    b = await _create_user(db_session, "order_b")
    for i in range(4):
        await _create_article(db_session, a if i % 2 else b, f"Ordered {i}", minutes=i)

    articles = (await db_session.execute(select(Article).order_by(Article.id.desc()))).scalars().all()
    enriched = await enrich(db_session, articles, None)
    assert [e.id for e in enriched] == [article.id for article in articles]


@pytest.mark.asyncio
async def test_enrichment_of_empty_page(db_session: AsyncSession):
    assert await enrich(db_session, [], 1) == []


# ---------------------------------------------------------------------------
# Count / slice consistency
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_count_and_slice_may_disagree_under_concurrent_writes(db_session: AsyncSession):
    """
    Count and slice are separate reads.  A write landing between them is
    visible to the slice but not to the count; listings accept that
    discrepancy rather than paying for snapshot isolation.
    """
    author_id = await _create_user(db_session, "racer")
    await _create_article(db_session, author_id, "Before", minutes=1)

    predicate = await build_predicate(db_session, Search())
    total = await count(db_session, predicate)
    await _create_article(db_session, author_id, "Between", minutes=2)
    page = await fetch_page(db_session, predicate, _params())

    assert total == 1
    assert len(page) == 2
