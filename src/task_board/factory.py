"""Dependency injection factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.requests import HTTPConnection

from task_board.config import Config
from task_board.costs.attributor import CostAttributor
from task_board.storage.task_store import JsonTaskStore
from task_board.storage.task_watcher import TaskWatcher
from task_board.websocket.broadcaster import Broadcaster

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Per-process components shared by routes, the watcher and the WebSocket."""

    config: Config
    store: JsonTaskStore
    attributor: CostAttributor
    broadcaster: Broadcaster
    watcher: TaskWatcher | None = None
    # Serializes the uniqueness check and write of new tasks
    create_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def create_services(config: Config) -> Services:
    """Build the store, attributor and broadcaster once per process."""
    store = JsonTaskStore(config.data_root)
    store.create_project(config.default_project)
    attributor = CostAttributor(config.sessions_dir, cache_ttl=config.cost_cache_ttl)
    return Services(
        config=config,
        store=store,
        attributor=attributor,
        broadcaster=Broadcaster(),
    )


def get_services(connection: HTTPConnection) -> Services:
    """FastAPI dependency returning the app's services (HTTP and WebSocket)."""
    services: Services = connection.app.state.services
    return services


def start_task_watcher(services: Services) -> None:
    """Start the file watcher and route its broadcasts onto the event loop."""
    # Watchdog and debounce timers run on threads
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.error("[Factory] No running event loop found")
        return

    def publish(event: str, payload: Any) -> None:
        loop.call_soon_threadsafe(services.broadcaster.publish, event, payload)

    watcher = TaskWatcher(
        services.store,
        services.attributor,
        publish,
        debounce_seconds=services.config.debounce_seconds,
    )
    try:
        watcher.start()
    except Exception as e:
        logger.error(f"[Factory] Failed to start task watcher: {e}", exc_info=True)
        watcher.stop()
        return
    services.watcher = watcher


def stop_task_watcher(services: Services) -> None:
    """Stop the file watcher if it is running."""
    if services.watcher is None:
        return
    try:
        services.watcher.stop()
    except Exception as e:
        logger.error(f"[Factory] Failed to stop task watcher: {e}")
    services.watcher = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle - startup and shutdown."""
    services: Services = app.state.services

    logger.info("[Lifespan] Backfilling task identifiers...")
    await asyncio.to_thread(services.store.backfill_identifiers)

    if services.config.watch_enabled:
        logger.info("[Lifespan] Starting task watcher...")
        start_task_watcher(services)
    try:
        yield
    finally:
        logger.info("[Lifespan] Stopping task watcher...")
        stop_task_watcher(services)


def create_app(config: Config | None = None) -> FastAPI:
    """Create FastAPI application (composition root)."""
    from task_board.api.costs import router as costs_router
    from task_board.api.tasks import router as tasks_router
    from task_board.api.websocket import router as ws_router

    config = config or Config()

    app = FastAPI(
        title="TaskBoard",
        description="File-backed task board with live sync and LLM cost attribution",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = create_services(config)

    # Mount API routes
    app.include_router(tasks_router, prefix="/api")
    app.include_router(costs_router, prefix="/api")
    app.include_router(ws_router)  # WebSocket at /ws

    # Mount the built board UI, if any
    if config.static_dir and config.static_dir.exists():
        app.mount("/", StaticFiles(directory=str(config.static_dir), html=True), name="static")

    return app
