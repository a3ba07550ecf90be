"""FastAPI application entry point with lifespan management.

Startup: load settings, configure logging, load the endpoint catalogue,
build the health registry, session store, observer bus, command sink and
orchestrator, start the periodic endpoint recovery loop.
Shutdown: clear every session (cancelling its timers), stop the recovery
loop, flush in-flight surface deliveries.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from embedrelay.config.endpoints import load_endpoint_catalog
from embedrelay.config.settings import RelaySettings
from embedrelay.logging_config import configure_logging
from embedrelay.middleware.error_handler import register_error_handlers
from embedrelay.middleware.request_id import RequestIdMiddleware
from embedrelay.proxy.registry import ProxyHealthRegistry
from embedrelay.routers.health import create_health_router
from embedrelay.routers.proxies import create_proxies_router
from embedrelay.routers.sessions import create_sessions_router
from embedrelay.services.orchestrator import SessionOrchestrator
from embedrelay.services.scheduler import LoopScheduler
from embedrelay.surface.commands import DetachedCommandSink, HttpCommandSink

logger = logging.getLogger(__name__)

# Shared state for the application, populated during lifespan startup
_state: dict = {}


async def recovery_loop(orchestrator: SessionOrchestrator, interval_seconds: float) -> None:
    """Apply an idle-recovery pass to every endpoint at a fixed interval."""
    while True:
        await asyncio.sleep(interval_seconds)
        orchestrator.optimize_all()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logic."""
    settings = RelaySettings()

    configure_logging(settings.log_level, json_format=settings.log_json)
    logger.info("Starting embed relay on port %d", settings.port)

    catalog = load_endpoint_catalog(settings.endpoints_path)
    scheduler = LoopScheduler(asyncio.get_running_loop())

    registry = ProxyHealthRegistry.from_catalog(
        catalog,
        scheduler,
        block_threshold=settings.block_threshold,
        block_cooldown_seconds=settings.block_cooldown_seconds,
        recovery_idle_seconds=settings.recovery_idle_seconds,
    )

    if settings.surface_url:
        sink = HttpCommandSink(
            settings.surface_url, timeout_seconds=settings.surface_timeout_seconds
        )
    else:
        logger.warning("RELAY_SURFACE_URL not set — player commands will not be delivered")
        sink = DetachedCommandSink()

    orchestrator = SessionOrchestrator.from_settings(
        settings,
        registry=registry,
        scheduler=scheduler,
        sink=sink,
        user_agents=catalog.user_agents,
    )

    recovery_task = asyncio.create_task(
        recovery_loop(orchestrator, settings.optimize_interval_seconds)
    )

    # Mount routers
    app.include_router(create_health_router(orchestrator=orchestrator, sink=sink))
    app.include_router(create_sessions_router(orchestrator=orchestrator))
    app.include_router(create_proxies_router(orchestrator=orchestrator))

    _state.update({
        "settings": settings,
        "registry": registry,
        "orchestrator": orchestrator,
        "sink": sink,
    })

    logger.info("Embed relay started successfully")

    yield

    # --- Shutdown ---
    logger.info("Shutting down embed relay…")

    orchestrator.clear_all()

    recovery_task.cancel()
    try:
        await recovery_task
    except asyncio.CancelledError:
        pass

    if isinstance(sink, HttpCommandSink):
        await sink.aclose(timeout=settings.graceful_shutdown_seconds)

    _state.clear()
    logger.info("Embed relay shut down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Embed Relay",
        version="1.0.0",
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)

    return app


app = create_app()
