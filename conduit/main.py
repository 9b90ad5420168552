import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conduit.cache import CacheManager
from conduit.config import settings
from conduit.database import Database
from conduit.exceptions import register_handlers
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, metrics, profiles, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: open the handles unless they were injected (tests).
    logging.basicConfig(level=settings.LOG_LEVEL)
    if app.state.database is None:
        app.state.database = Database(settings.DATABASE_URL, echo=settings.DEBUG, pool_pre_ping=True)
    if app.state.cache is None:
        app.state.cache = CacheManager(settings.REDIS_URL)
    await app.state.cache.connect()
    logger.info("Conduit started (env=%s)", settings.APP_ENV)
    yield
    # Shutdown
    await app.state.cache.disconnect()
    await app.state.database.dispose()


def create_app(database: Database | None = None, cache: CacheManager | None = None) -> FastAPI:
    app = FastAPI(
        title="Conduit",
        description="Blogging platform API: articles, feeds, favourites and comments",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.database = database
    app.state.cache = cache

    register_handlers(app)

    # Middleware
    app.add_middleware(TimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(articles.router)
    app.include_router(profiles.router)
    app.include_router(users.router)
    app.include_router(metrics.router)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": "1.0.0"}

    return app


app = create_app()
