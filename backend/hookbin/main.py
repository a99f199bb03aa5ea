from contextlib import asynccontextmanager
from typing import Optional
import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
import uvicorn

from hookbin.api import events, hooks, realtime
from hookbin.api.realtime import SubscriberHub
from hookbin.config import Settings, get_settings
from hookbin.errors import HookbinError
from hookbin.namespaces import NamespaceRegistry
from hookbin.storage import NamespaceStore

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        stream=sys.stderr,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    store: NamespaceStore = app.state.store
    loaded = store.load_all()
    logger.info(
        "Serving namespaces %s from %s (%d events loaded)",
        app.state.registry.list(), store.data_dir, sum(loaded.values()),
    )
    if store.unavailable:
        logger.error("Quarantined namespaces: %s", store.unavailable)
    yield


async def hookbin_error_handler(request: Request, exc: HookbinError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Application factory; each call builds an independent registry, store and hub."""
    if settings is None:
        settings = get_settings()

    registry = NamespaceRegistry(settings.namespace_list)

    app = FastAPI(
        title="hookbin",
        version=settings.VERSION,
        description="Multi-tenant HTTP request recorder",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.store = NamespaceStore(registry, settings.DATA_DIR, fsync=settings.FSYNC_WRITES)
    app.state.hub = SubscriberHub(registry.list(), queue_size=settings.SUBSCRIBER_QUEUE_SIZE)

    app.add_exception_handler(HookbinError, hookbin_error_handler)

    app.include_router(events.router)
    app.include_router(hooks.router)
    app.include_router(realtime.router)

    @app.get("/health")
    async def health():
        store: NamespaceStore = app.state.store
        return {
            "status": "ok",
            "namespaces": store.counts(),
            "unavailable": store.unavailable,
            "subscribers": len(app.state.hub),
        }

    # Mounted last so it never shadows the API
    if settings.STATIC_DIR and os.path.isdir(settings.STATIC_DIR):
        app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")

    return app


def run(host: Optional[str] = None, port: Optional[int] = None, data_dir: Optional[str] = None):
    # uvicorn builds the app through the factory, which only sees the environment
    if data_dir:
        os.environ["DATA_DIR"] = data_dir
        get_settings.cache_clear()
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "hookbin.main:create_app",
        factory=True,
        host=host or settings.HOST,
        port=port or settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


# ========== MAIN ENTRY POINT ==========

if __name__ == "__main__":
    run()
