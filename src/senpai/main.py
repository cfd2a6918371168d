"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from senpai.config import get_settings
from senpai.database import close_db, init_db
from senpai.health.router import router as health_router
from senpai.matches.router import router as matches_router
from senpai.messages.router import router as messages_router
from senpai.middleware import setup_middleware
from senpai.notifications.router import router as notifications_router
from senpai.redis_client import close_redis, init_redis
from senpai.reviews.router import router as reviews_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    # An empty URL turns realtime push off; notifications are still persisted
    if settings.redis_url:
        await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Senpai API",
        description="Match lifecycle, reviews and notifications for the senpai/kouhai matching platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(matches_router)
    app.include_router(reviews_router)
    app.include_router(messages_router)
    app.include_router(notifications_router)

    return app


app = create_app()
