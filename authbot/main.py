"""AuthBot: Telegram-authenticated web sessions.

FastAPI entry point with lifespan management and the optional hub relay.
"""

import asyncio
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from . import __version__
from .api.router import api_router, session_check_router
from .auth.rbac import RoleRegistry
from .auth.sessions import SessionEngine
from .bot.dispatcher import CommandDispatcher
from .bot.hub import HubSubscriber
from .config import AuthbotConfig, get_config
from .middleware.error_handler import register_error_handlers
from .middleware.request_id import RequestIDMiddleware
from .notifications.telegram import TelegramSender
from .store import KeyValueStore, create_redis
from .utils.logging import get_logger, setup_logging
from .utils.timefmt import to_epoch_millis

logger = get_logger("authbot.main")

_HUB_STOP_TIMEOUT = 3.0


async def _write_start_record(store: KeyValueStore) -> None:
    key = store.key("started")
    record = {
        "started": str(to_epoch_millis(datetime.now(timezone.utc))),
        "pid": str(os.getpid()),
    }
    await store.execute_atomic(lambda pipe: pipe.hset(key, mapping=record))


def _build_lifespan(
    config: AuthbotConfig,
    redis_client: Optional[Redis],
    hub_client: Optional[Redis],
    sender: Optional[TelegramSender],
):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown."""
        # --- Startup ---
        logger.info("authbot_starting", host=config.host, port=config.port, namespace=config.namespace)

        store = KeyValueStore.from_config(config, client=redis_client)
        sessions = SessionEngine(store, config)
        registry = RoleRegistry(store, config)
        notifier = sender if sender is not None else TelegramSender(
            config.token,
            timeout=config.send_timeout,
            send_format=config.send_format,
            api_base=config.telegram_api,
        )
        dispatcher = CommandDispatcher(config, sessions, registry, notifier)

        app.state.config = config
        app.state.store = store
        app.state.sessions = sessions
        app.state.registry = registry
        app.state.sender = notifier
        app.state.dispatcher = dispatcher

        await _write_start_record(store)

        hub_task: Optional[asyncio.Task] = None
        hub_redis: Optional[Redis] = None
        if config.hub_redis or hub_client is not None:
            hub_redis = hub_client or create_redis(config.hub_redis)
            hub = HubSubscriber(hub_redis, f"{config.hub_namespace}:{config.secret}", dispatcher)
            hub_task = asyncio.create_task(hub.run())
            logger.info("hub_started", namespace=config.hub_namespace)

        logger.info("authbot_started", app=config.app_name)

        yield

        # --- Shutdown ---
        logger.info("authbot_shutting_down")

        if hub_task is not None:
            hub_task.cancel()
            await asyncio.wait([hub_task], timeout=_HUB_STOP_TIMEOUT)
            # Injected clients belong to the caller
            if hub_client is None:
                await hub_redis.aclose()

        if redis_client is None:
            await store.close()
        logger.info("authbot_stopped")

    return lifespan


def create_app(
    config: Optional[AuthbotConfig] = None,
    redis_client: Optional[Redis] = None,
    hub_client: Optional[Redis] = None,
    sender: Optional[TelegramSender] = None,
) -> FastAPI:
    """Build the application.

    Args:
        config: Settings; loaded from the environment when omitted
        redis_client: Pre-built Redis client, e.g. an in-process fake
        hub_client: Pre-built client for the hub relay
        sender: Notification sender replacing the Telegram one
    """
    config = config or get_config()
    setup_logging(
        debug=config.debug,
        log_dir=config.log_dir,
        log_max_bytes=config.log_max_bytes,
        log_backup_count=config.log_backup_count,
    )

    app = FastAPI(
        title="AuthBot",
        description="Telegram bot login for web sessions",
        version=__version__,
        lifespan=_build_lifespan(config, redis_client, hub_client, sender),
    )

    register_error_handlers(app)

    # Request ID (added last so it runs first)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(api_router)
    if config.session_route:
        app.include_router(session_check_router)

    @app.get("/health")
    async def health(request: Request):
        """Report whether the session store is reachable."""
        store_ok = await request.app.state.store.ping()
        return JSONResponse(
            status_code=200 if store_ok else 503,
            content={"status": "healthy" if store_ok else "degraded", "redis": store_ok},
        )

    return app


def main():
    """Run the AuthBot server."""
    config = get_config()
    uvicorn.run(
        "authbot.main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()
