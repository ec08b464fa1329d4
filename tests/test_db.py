"""Tests for konterra.db: connection parameters and pool management."""

from __future__ import annotations

import shutil
import uuid
from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from konterra.db import Database, db_params_from_env, schema_search_path

docker_available = shutil.which("docker") is not None


@pytest.fixture
def clean_env(monkeypatch):
    for var in (
        "DATABASE_URL",
        "POSTGRES_HOST",
        "POSTGRES_PORT",
        "POSTGRES_USER",
        "POSTGRES_PASSWORD",
        "POSTGRES_SSLMODE",
    ):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestConnectionParams:
    def test_defaults(self, clean_env):
        assert db_params_from_env() == {
            "host": "localhost",
            "port": 5432,
            "user": "konterra",
            "password": "konterra",
            "ssl": None,
        }

    def test_postgres_variables(self, clean_env):
        clean_env.setenv("POSTGRES_HOST", "db.internal")
        clean_env.setenv("POSTGRES_PORT", "6543")
        clean_env.setenv("POSTGRES_SSLMODE", "Require")
        params = db_params_from_env()
        assert params["host"] == "db.internal"
        assert params["port"] == 6543
        assert params["ssl"] == "require"

    def test_database_url_wins(self, clean_env):
        clean_env.setenv("POSTGRES_HOST", "ignored")
        clean_env.setenv("DATABASE_URL", "postgresql://crm:s3cret@pg:5433/x?sslmode=verify-full")
        assert db_params_from_env() == {
            "host": "pg",
            "port": 5433,
            "user": "crm",
            "password": "s3cret",
            "ssl": "verify-full",
        }

    def test_invalid_sslmode_is_ignored(self, clean_env):
        clean_env.setenv("POSTGRES_SSLMODE", "sometimes")
        assert db_params_from_env()["ssl"] is None

    def test_from_env(self, clean_env):
        clean_env.setenv("POSTGRES_USER", "crm")
        db = Database.from_env("konterra", schema="crm")
        assert db.db_name == "konterra"
        assert db.user == "crm"
        assert db.schema == "crm"
        assert db.pool is None


@pytest.mark.unit
class TestUrlAndSchema:
    def test_sqlalchemy_url_quotes_credentials(self):
        db = Database("konterra", user="crm", password="p@ss/word", host="pg", port=5433)
        assert db.sqlalchemy_url() == "postgresql://crm:p%40ss%2Fword@pg:5433/konterra"

    def test_sqlalchemy_url_carries_sslmode(self):
        db = Database("konterra", ssl="require")
        assert db.sqlalchemy_url().endswith("/konterra?sslmode=require")

    def test_search_path(self):
        assert schema_search_path(None) is None
        assert schema_search_path("  ") is None
        assert schema_search_path("public") == "public"
        assert schema_search_path("crm") == "crm,public"

    def test_invalid_schema_rejected(self):
        with pytest.raises(ValueError, match="Invalid schema name"):
            Database("konterra", schema="crm; DROP")

    async def test_connect_sets_search_path(self):
        db = Database("konterra", schema="crm", min_pool_size=1, max_pool_size=2)
        fake_pool = AsyncMock()
        with patch("konterra.db.asyncpg.create_pool", AsyncMock(return_value=fake_pool)) as create:
            pool = await db.connect()
        assert pool is fake_pool
        kwargs = create.call_args.kwargs
        assert kwargs["database"] == "konterra"
        assert kwargs["min_size"] == 1
        assert kwargs["max_size"] == 2
        assert kwargs["server_settings"] == {"search_path": "crm,public"}

        await db.close()
        fake_pool.close.assert_awaited_once()
        assert db.pool is None

    async def test_close_without_pool_is_noop(self):
        await Database("konterra").close()


@pytest.mark.integration
@pytest.mark.skipif(not docker_available, reason="Docker not available")
async def test_provision_is_idempotent(postgres_container):
    db = Database(
        db_name=f"test_{uuid.uuid4().hex[:12]}",
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        user=postgres_container.username,
        password=postgres_container.password,
        min_pool_size=1,
        max_pool_size=2,
    )
    await db.provision()
    await db.provision()

    pool = await db.connect()
    try:
        assert await pool.fetchval("SELECT current_database()") == db.db_name
    finally:
        await db.close()

    conn = await asyncpg.connect(
        host=db.host, port=db.port, user=db.user, password=db.password, database="postgres"
    )
    try:
        assert await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db.db_name) == 1
    finally:
        await conn.close()
