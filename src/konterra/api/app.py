"""Konterra API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- CORS middleware (origins from configuration)
- Lifespan handler that opens the asyncpg pool and the geocoder's HTTP client
- Health endpoint at GET /api/health
- Routers for contacts, the relationship graph, geocoding, records, travel, and tags

Every route except the health check requires the ``X-User-Id`` header.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from konterra import __version__
from konterra.api.deps import init_dependencies, shutdown_dependencies
from konterra.api.middleware import register_error_handlers
from konterra.api.routers.connections import router as connections_router
from konterra.api.routers.contacts import router as contacts_router
from konterra.api.routers.geocode import router as geocode_router
from konterra.api.routers.records import router as records_router
from konterra.api.routers.tags import router as tags_router
from konterra.api.routers.travel import router as travel_router
from konterra.config import KonterraConfig, load_config_or_default

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "KONTERRA_CONFIG_DIR"


def _resolve_config(config: KonterraConfig | None) -> KonterraConfig:
    if config is not None:
        return config
    config_dir = os.environ.get(CONFIG_DIR_ENV)
    return load_config_or_default(Path(config_dir) if config_dir else None)


def create_app(config: KonterraConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Loaded configuration. When omitted, it is read from the directory in
        ``KONTERRA_CONFIG_DIR`` or falls back to defaults, which lets
        ``uvicorn --factory`` build the app without arguments.
    """
    config = _resolve_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_dependencies(config)
        try:
            yield
        finally:
            await shutdown_dependencies()

    app = FastAPI(
        title="Konterra API",
        version=__version__,
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(contacts_router)
    app.include_router(connections_router)
    app.include_router(geocode_router)
    app.include_router(records_router)
    app.include_router(travel_router)
    app.include_router(tags_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    logger.debug("Konterra API created for %s", config.name)
    return app
