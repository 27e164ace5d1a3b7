"""FastAPI application factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from wild90.camera.router import router as camera_router
from wild90.config import Settings, get_settings
from wild90.database import close_db, create_schema, get_session, get_session_factory, init_db
from wild90.gamification.router import router as gamification_router
from wild90.gamification.seed import seed_all
from wild90.health.router import router as health_router
from wild90.ledger.client import SqlLedgerClient
from wild90.middleware import setup_middleware
from wild90.redis_client import close_redis, get_redis, init_redis
from wild90.runtime import build_runtime
from wild90.scan.router import router as scan_router
from wild90.session.router import router as session_router
from wild90.ws.bridge import PubSubBridge
from wild90.ws.router import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await create_schema()
    await init_redis(settings.redis_url)

    if settings.seed_on_startup:
        try:
            async for db in get_session():
                await seed_all(db)
                break
        except Exception:
            logger.warning("seed_failed", exc_info=True)

    redis = get_redis()
    runtime = build_runtime(settings, SqlLedgerClient(get_session_factory()), redis)
    app.state.runtime = runtime

    # Start the Redis pub/sub -> WebSocket bridge
    bridge: PubSubBridge | None = None
    bridge_task: asyncio.Task[None] | None = None
    if redis is not None:
        bridge = PubSubBridge(redis)
        bridge_task = asyncio.create_task(bridge.start())

    yield

    await runtime.shutdown()
    if bridge is not None and bridge_task is not None:
        await bridge.stop()
        bridge_task.cancel()
        try:
            await bridge_task
        except asyncio.CancelledError:
            pass

    await close_db()
    await close_redis()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Wild90 Scanner",
        description="Scanner client: camera capture, scan pipeline, achievements and community goals",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(session_router)
    app.include_router(camera_router)
    app.include_router(scan_router)
    app.include_router(gamification_router)
    app.include_router(ws_router)

    return app


app = create_app()
