"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ballot.config import get_settings
from ballot.database import close_db, get_session, init_db
from ballot.health.router import router as health_router
from ballot.ledger.router import router as ledger_router
from ballot.ledger.seed import seed_achievements
from ballot.middleware import setup_middleware
from ballot.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_url:
        await init_redis(settings.redis_url)

    # Seed achievement catalog (idempotent)
    try:
        async for db in get_session():
            await seed_achievements(db)
            break
    except Exception:
        logger.warning("Achievement seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Ballot Ledger API",
        description="Daily topic voting with tallies, streaks and achievements",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(ledger_router)

    return app


app = create_app()
