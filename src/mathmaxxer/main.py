"""FastAPI application factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mathmaxxer.competition.router import router as competition_router
from mathmaxxer.config import get_settings
from mathmaxxer.database import close_db, init_db
from mathmaxxer.games.router import router as games_router
from mathmaxxer.health.router import router as health_router
from mathmaxxer.middleware import setup_middleware
from mathmaxxer.profiles.router import router as profiles_router
from mathmaxxer.redis_client import close_redis, get_redis, init_redis
from mathmaxxer.ws.bridge import PubSubBridge
from mathmaxxer.ws.manager import manager
from mathmaxxer.ws.router import router as ws_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    manager.max_connections_per_user = settings.ws_max_connections_per_user

    # Redis pub/sub -> WebSocket bridge
    bridge = PubSubBridge(get_redis())
    bridge_task = asyncio.create_task(bridge.start())

    yield

    await bridge.stop()
    bridge_task.cancel()
    try:
        await bridge_task
    except asyncio.CancelledError:
        pass

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Math Maxxer API",
        description="Game API for Math Maxxer: answer verification, ratings and matchmaking",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(profiles_router)
    app.include_router(games_router)
    app.include_router(competition_router)
    app.include_router(ws_router)

    return app


app = create_app()
