import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from socketio import ASGIApp, AsyncServer

from sync_relay import config
from sync_relay.api import status
from sync_relay.api.events import register_events
from sync_relay.config import Settings
from sync_relay.logging_config import get_logger, setup_logging
from sync_relay.services.registry import RoomRegistry, SessionRegistry
from sync_relay.services.stats import StatsReporter
from sync_relay.services.sweeper import EvictionSweeper
from sync_relay.services.sync_manager import SyncManager, now_ms
from sync_relay.services.transport import SocketIOTransport

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the periodic tasks for the lifetime of the server."""
    settings = app.state.settings
    tasks = [
        asyncio.create_task(app.state.sweeper.run(), name="eviction-sweeper"),
        asyncio.create_task(
            app.state.stats.run_periodic_log(settings.stats_log_interval_seconds),
            name="stats-logger",
        ),
    ]
    logger.info(f"Sync server {settings.server_id} v{settings.server_version} started")
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Background tasks stopped, server closed")


def create_app(settings: Optional[Settings] = None, clock=now_ms) -> FastAPI:
    """Build the FastAPI app with its Socket.IO server and relay state.

    The Socket.IO server is exposed as ``app.state.sio``; wrap both with
    ``socketio.ASGIApp`` to serve them.
    """
    settings = settings or Settings()
    setup_logging(log_level=settings.log_level, log_file=settings.log_file)

    app = FastAPI(
        title="Wormup Sync Server",
        description="Real-time presence and appearance relay",
        version=settings.server_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    origins = settings.allowed_origins
    sio = AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*" if origins == ["*"] else origins,
        ping_timeout=settings.ping_timeout,
        ping_interval=settings.ping_interval,
        logger=settings.debug,
        engineio_logger=settings.debug,
    )

    manager = SyncManager(
        SessionRegistry(),
        RoomRegistry(),
        SocketIOTransport(sio),
        clock=clock,
        server_id=settings.server_id,
        version=settings.server_version,
    )
    register_events(sio, manager)

    app.state.settings = settings
    app.state.sio = sio
    app.state.sync_manager = manager
    app.state.stats = StatsReporter(manager)
    app.state.sweeper = EvictionSweeper(
        manager,
        interval_seconds=settings.cleanup_interval_seconds,
        stale_after_seconds=settings.stale_session_seconds,
    )

    app.include_router(status.router, tags=["status"])
    return app


app = create_app()

# Wrap FastAPI with Socket.IO
socket_app = ASGIApp(app.state.sio, app)


def run():
    import uvicorn

    logger.info(f"Starting sync server on {config.HOST}:{config.PORT}")
    uvicorn.run(socket_app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
