"""FastAPI server for the status monitor."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from server_monitor import __version__
from server_monitor.api.routes import router
from server_monitor.config import settings
from server_monitor.monitor.network import ConnectivityMonitor, NetworkGate
from server_monitor.monitor.scheduler import CheckScheduler
from server_monitor.registry.registry import ServerRegistry
from server_monitor.registry.store import BlobStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire up store, registry, gate and scheduler unless already provided."""
    owned = not hasattr(app.state, "scheduler")

    if owned:
        store = BlobStore(settings.db_path)
        registry = ServerRegistry(store)
        registry.load()
        gate = NetworkGate()

        connectivity = ConnectivityMonitor(
            host=settings.connectivity_probe_host,
            port=settings.connectivity_probe_port,
            interval=settings.connectivity_interval_seconds,
        )
        connectivity.subscribe(gate.observe)

        scheduler = CheckScheduler(
            registry,
            store,
            gate,
            timeout=settings.check_timeout_seconds,
            match_expected=settings.match_expected_status,
            ready_timeout=settings.network_ready_timeout,
            path_probe=connectivity.current_path,
        )

        app.state.store = store
        app.state.registry = registry
        app.state.gate = gate
        app.state.connectivity = connectivity
        app.state.scheduler = scheduler

        try:
            await connectivity.start()
        except Exception:
            logger.exception("Connectivity monitor failed to start")
        try:
            await scheduler.start()
        except Exception:
            logger.exception("Check scheduler failed to start")

    yield

    # Shutdown
    await app.state.scheduler.stop()
    if owned:
        await app.state.connectivity.stop()
        app.state.store.close()
        # Components built here die with this lifespan; the next one rebuilds them
        for name in ("scheduler", "connectivity", "gate", "registry", "store"):
            delattr(app.state, name)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Server Status Monitor",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")
    return app


app = create_app()
