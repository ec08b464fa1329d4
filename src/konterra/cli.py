"""CLI for konterra: serve the API, apply migrations, and run coordinate enrichment."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path

import click

from konterra.config import ConfigError, KonterraConfig, load_config_or_default
from konterra.core.logging import configure_logging, set_user_context
from konterra.db import Database
from konterra.geocoding import build_geocoder
from konterra.migrations import run_migrations
from konterra.tools.enrichment import EnrichmentResult, EntityKind, enrich_batch, enrichment_target

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "KONTERRA_CONFIG_DIR"


def _load(config_dir: Path | None) -> KonterraConfig:
    try:
        config = load_config_or_default(config_dir)
    except ConfigError as exc:
        click.echo(f"Invalid configuration: {exc}", err=True)
        sys.exit(1)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=config.logging.log_root,
        service_name=config.name,
    )
    return config


_config_option = click.option(
    "--config",
    "config_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    envvar=CONFIG_DIR_ENV,
    help="Directory containing konterra.toml (defaults to built-in settings)",
)


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Konterra: personal-network CRM core."""


@cli.command()
@_config_option
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", type=int, default=8000, show_default=True, help="Bind port")
def serve(config_dir: Path | None, host: str, port: int) -> None:
    """Start the HTTP API."""
    import uvicorn

    _load(config_dir)
    if config_dir is not None:
        os.environ[CONFIG_DIR_ENV] = str(config_dir)
    click.echo(f"Starting konterra API on {host}:{port}")
    uvicorn.run("konterra.api.app:create_app", host=host, port=port, factory=True)


@cli.command()
@_config_option
def migrate(config_dir: Path | None) -> None:
    """Create the database if needed and apply all schema migrations."""
    config = _load(config_dir)
    asyncio.run(_migrate(config))
    click.echo(f"Database {config.db_name} is up to date")


async def _migrate(config: KonterraConfig) -> None:
    db = Database.from_env(config.db_name, schema=config.db_schema)
    await db.provision()
    await run_migrations(db.sqlalchemy_url(), schema=config.db_schema)


@cli.command()
@_config_option
@click.argument("kind", type=click.Choice([k.value for k in EntityKind]))
@click.option("--user-id", required=True, help="Owner of the records to enrich")
@click.option(
    "--until-done",
    is_flag=True,
    default=False,
    help="Keep running batches while they make progress",
)
def enrich(config_dir: Path | None, kind: str, user_id: str, until_done: bool) -> None:
    """Geocode records that are missing coordinates, one batch at a time."""
    config = _load(config_dir)
    set_user_context(user_id)
    total = asyncio.run(_enrich(config, EntityKind(kind), user_id, until_done))
    click.echo(
        f"{kind}: enriched={total.enriched} skipped={total.skipped} "
        f"failed={total.failed} remaining={total.remaining}"
    )


async def _enrich(
    config: KonterraConfig, kind: EntityKind, user_id: str, until_done: bool
) -> EnrichmentResult:
    """Run one batch, or repeat while each batch enriches at least one record.

    A batch that enriches nothing would select the same rows again, so the
    loop stops there even when ``remaining`` is non-zero.
    """
    target = enrichment_target(kind, config.enrichment)
    db = Database.from_env(config.db_name, schema=config.db_schema)
    pool = await db.connect()
    geocoder = build_geocoder(config.geocoding)
    total = EnrichmentResult()
    try:
        while True:
            result = await enrich_batch(pool, user_id, target, geocoder)
            total = EnrichmentResult(
                enriched=total.enriched + result.enriched,
                skipped=total.skipped + result.skipped,
                failed=total.failed + result.failed,
                remaining=result.remaining,
            )
            if not until_done or result.enriched == 0 or result.remaining == 0:
                break
    finally:
        await geocoder.shutdown()
        await db.close()
    return total
