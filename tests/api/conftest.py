"""Shared fixtures for API tests: an app with the lifespan suppressed and deps overridden."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi import FastAPI

from konterra.api.app import create_app
from konterra.api.deps import get_config, get_geocoder, get_pool
from konterra.config import KonterraConfig

USER_ID = "user-1"


@asynccontextmanager
async def _null_lifespan(_app):
    yield


@pytest.fixture
def mock_pool() -> AsyncMock:
    pool = AsyncMock()
    pool.fetch = AsyncMock(return_value=[])
    pool.fetchval = AsyncMock(return_value=0)
    pool.fetchrow = AsyncMock(return_value=None)
    return pool


@pytest.fixture
def mock_geocoder() -> MagicMock:
    geocoder = MagicMock()
    geocoder.geocode = AsyncMock(return_value=None)
    return geocoder


@pytest.fixture
def app(mock_pool, mock_geocoder) -> FastAPI:
    config = KonterraConfig()
    application = create_app(config)
    # Keep the lifespan from opening a real pool over our mocks.
    application.router.lifespan_context = _null_lifespan
    application.dependency_overrides[get_pool] = lambda: mock_pool
    application.dependency_overrides[get_geocoder] = lambda: mock_geocoder
    application.dependency_overrides[get_config] = lambda: config
    return application


@pytest.fixture
async def client(app) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
        headers={"X-User-Id": USER_ID},
    ) as c:
        yield c


@pytest.fixture
async def anon_client(app) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c
