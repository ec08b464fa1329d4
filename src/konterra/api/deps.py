"""Shared FastAPI dependencies: the asyncpg pool, the geocoder, config, and caller identity.

The pool and geocoder are module-level singletons created by the app lifespan
(``init_dependencies``) and torn down on shutdown. Tests override the getters
through ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from typing import Annotated

import asyncpg
from fastapi import Header

from konterra.config import KonterraConfig
from konterra.core.logging import set_user_context
from konterra.db import Database
from konterra.errors import UnauthorizedError
from konterra.geocoding import Geocoder, build_geocoder

logger = logging.getLogger(__name__)

_database: Database | None = None
_pool: asyncpg.Pool | None = None
_geocoder: Geocoder | None = None
_config: KonterraConfig | None = None


async def init_dependencies(config: KonterraConfig) -> None:
    """Provision and connect the database, and build the geocoder.

    Called once during app startup (in the lifespan handler).
    """
    global _database, _pool, _geocoder, _config  # noqa: PLW0603

    _config = config
    db = Database.from_env(config.db_name, schema=config.db_schema)
    await db.provision()
    _pool = await db.connect()
    _database = db
    _geocoder = build_geocoder(config.geocoding)
    logger.info(
        "API dependencies initialized (db=%s, geocoder=%s)",
        config.db_name,
        _geocoder.provider_name,
    )


async def shutdown_dependencies() -> None:
    """Close the geocoder's HTTP client and the pool. Called during app shutdown."""
    global _database, _pool, _geocoder, _config  # noqa: PLW0603

    if _geocoder is not None:
        await _geocoder.shutdown()
        _geocoder = None
    if _database is not None:
        await _database.close()
        _database = None
    _pool = None
    _config = None


def get_pool() -> asyncpg.Pool:
    """FastAPI dependency: provides the asyncpg pool singleton."""
    if _pool is None:
        raise RuntimeError("Database pool not initialized; call init_dependencies() first")
    return _pool


def get_geocoder() -> Geocoder:
    """FastAPI dependency: provides the Geocoder singleton."""
    if _geocoder is None:
        raise RuntimeError("Geocoder not initialized; call init_dependencies() first")
    return _geocoder


def get_config() -> KonterraConfig:
    """FastAPI dependency: provides the loaded configuration."""
    if _config is None:
        raise RuntimeError("Config not initialized; call init_dependencies() first")
    return _config


def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """FastAPI dependency: the caller's user id from the ``X-User-Id`` header.

    The header is set by the authenticating proxy in front of the API. Every
    tool call is scoped by this value. The id is also bound to the logging
    context so request logs carry it.
    """
    if x_user_id is None or not x_user_id.strip():
        raise UnauthorizedError("Missing X-User-Id header")
    user_id = x_user_id.strip()
    set_user_context(user_id)
    return user_id
