"""Database seeder: users, follow graph, articles and favourites."""
import argparse
import asyncio
import random
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update

from conduit.config import settings
from conduit.database import Database
from conduit.models import Article, Favourite, Follow, User

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance",
        "security", "microservices", "graphql", "rest-api", "go", "backend"]


async def seed(database: Database, small: bool = False) -> None:
    num_users = 10 if small else 50
    num_articles = 100 if small else 10000
    follows_per_user = 3 if small else 10
    favourites_per_user = 5 if small else 40

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    await database.drop_all()
    await database.create_all()

    async with database.session() as session:
        users = []
        for i in range(num_users):
            user = User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                name=f"User {i}",
                bio=f"I am test user number {i}. I write about technology.",
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users")

        follow_pairs = set()
        for user in users:
            others = [u for u in users if u.id != user.id]
            for target in random.sample(others, k=min(follows_per_user, len(others))):
                follow_pairs.add((user.id, target.id))
        session.add_all(Follow(follower_id=a, following_id=b) for a, b in follow_pairs)
        print(f"  Created {len(follow_pairs)} follows")

        batch_size = 500
        for batch_start in range(0, num_articles, batch_size):
            for i in range(batch_start, min(batch_start + batch_size, num_articles)):
                topic = random.choice(TAGS)
                session.add(Article(
                    title=f"Article {i}: How to optimize {topic} applications",
                    slug=f"article-{i}-optimize-{topic}",
                    description=f"A guide to optimizing {topic} applications for production.",
                    content=f"This is the full content of article {i}. " * 20,
                    tags=random.sample(TAGS, k=random.randint(1, 4)),
                    favourite_count=0,
                    created_at=datetime.now(timezone.utc) - timedelta(minutes=random.randint(0, 525600)),
                    author_id=random.choice(users).id,
                ))
            await session.flush()
            print(f"  Batch {batch_start}: articles created")

        article_ids = list((await session.execute(select(Article.id))).scalars())
        for user in users:
            for article_id in random.sample(article_ids, k=min(favourites_per_user, len(article_ids))):
                session.add(Favourite(user_id=user.id, article_id=article_id))
        await session.flush()

        # Bring the denormalized counters in line with the relation rows.
        fav_counts = select(func.count()).where(Favourite.article_id == Article.id).scalar_subquery()
        await session.execute(
            update(Article).values(favourite_count=fav_counts).execution_options(synchronize_session=False)
        )
        followers = select(func.count()).where(Follow.following_id == User.id).scalar_subquery()
        following = select(func.count()).where(Follow.follower_id == User.id).scalar_subquery()
        await session.execute(
            update(User)
            .values(follower_count=followers, following_count=following)
            .execution_options(synchronize_session=False)
        )

        await session.commit()

    print(f"\nSeeding complete in {time.perf_counter() - start:.1f}s")


async def _main(small: bool) -> None:
    database = Database(settings.DATABASE_URL)
    try:
        await seed(database, small=small)
    finally:
        await database.dispose()


def main():
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    asyncio.run(_main(args.small))


if __name__ == "__main__":
    main()
