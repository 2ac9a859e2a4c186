from __future__ import annotations

import logging
from collections.abc import Callable

import redis
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from chatroom.api.routes import router
from chatroom.config import Settings, load_settings
from chatroom.errors import StorageUnavailable
from chatroom.infra.redis_client import create_redis
from chatroom.presence import PresenceRegistry
from chatroom.message_log import MessageLog
from chatroom.storage import StorageGateway
from chatroom.sweeper import PresenceSweeper, SweeperConfig

logger = logging.getLogger(__name__)

RedisFactory = Callable[[Settings], redis.Redis]


def _default_redis_factory(settings: Settings) -> redis.Redis:
    return create_redis(url=settings.redis_url, timeout_s=settings.storage_timeout_s)


async def _storage_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("storage unavailable during %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})


def create_app(*, settings: Settings | None = None, redis_factory: RedisFactory | None = None) -> FastAPI:
    settings = settings or load_settings()
    factory = redis_factory or _default_redis_factory

    # Configure logging
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(title="chatroom-api", version="0.1.0")
    app.state.settings = settings
    app.state.sweeper = None
    app.include_router(router)
    app.add_exception_handler(StorageUnavailable, _storage_unavailable_handler)

    @app.on_event("startup")
    async def _startup() -> None:
        r = factory(settings)
        storage = StorageGateway(r=r, prefix=settings.key_prefix)
        # Without storage there is nothing to serve: let startup fail.
        storage.ping()
        app.state.redis = r
        logger.info("connected to storage at %s", settings.redis_url)

        if settings.sweep_enabled:
            presence = PresenceRegistry(storage=storage, log=MessageLog(storage=storage))
            sweeper = PresenceSweeper(
                presence=presence,
                storage=storage,
                config=SweeperConfig(interval_s=settings.sweep_interval_s, timeout_ms=settings.inactivity_timeout_ms),
            )
            sweeper.start()
            app.state.sweeper = sweeper

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        sweeper: PresenceSweeper | None = app.state.sweeper
        if sweeper is not None:
            await sweeper.stop()
            app.state.sweeper = None
        r: redis.Redis | None = getattr(app.state, "redis", None)
        if r is not None:
            r.close()

    return app


app = create_app()
