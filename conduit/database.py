from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from conduit.middleware import install_query_counter


class Base(DeclarativeBase):
    pass


class Database:
    """
    Storage-access handle owning the async engine and session factory.

    Constructed once at process start (see ``conduit.main.lifespan``),
    stored on ``app.state.database`` and disposed at shutdown.  Request
    handlers receive sessions through the ``get_db`` dependency rather
    than importing a module-level engine.
    """

    def __init__(self, url: str | None = None, engine: AsyncEngine | None = None, **engine_kwargs) -> None:
        if engine is None:
            if url is None:
                raise ValueError("Database needs either a url or an engine")
            engine = create_async_engine(url, **engine_kwargs)
        self.engine = engine
        # Register the per-request SQL query counter on this engine.
        install_query_counter(engine)
        self.sessionmaker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        return self.sessionmaker()

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Commit every write issued inside the block as one transaction.

    Any exception rolls the whole transaction back before propagating,
    so a relation write and its paired counter update either both land
    or neither does.
    """
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
