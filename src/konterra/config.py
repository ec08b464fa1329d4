"""Konterra configuration loading and validation.

Reads konterra.toml from a config directory, parses all sections, and returns
a validated KonterraConfig dataclass.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_FILENAME = "konterra.toml"
DEFAULT_USER_AGENT = "NetworkGlobeCRM/1.0"
DEFAULT_CORS_ORIGINS: tuple[str, ...] = ("http://localhost:3000",)

# Pattern matching ${VAR_NAME}; supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_DB_SCHEMA_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(Exception):
    """Raised when konterra configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [konterra.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class GeocodingConfig:
    """External geocoder settings from the [geocoding] section.

    When ``opencage_api_key`` is set the OpenCage provider is used; otherwise
    lookups fall back to the free Nominatim service, which requires an
    identifying User-Agent.
    """

    timeout_seconds: float = 5.0
    user_agent: str = DEFAULT_USER_AGENT
    opencage_api_key: str | None = None


@dataclass
class EnrichmentTargetConfig:
    """Per-entity batch settings from [enrichment.<kind>]."""

    batch_size: int
    delay_ms: int


@dataclass
class EnrichmentConfig:
    contacts: EnrichmentTargetConfig = field(
        default_factory=lambda: EnrichmentTargetConfig(batch_size=20, delay_ms=350)
    )
    trips: EnrichmentTargetConfig = field(
        default_factory=lambda: EnrichmentTargetConfig(batch_size=25, delay_ms=300)
    )


@dataclass
class KonterraConfig:
    """Parsed and validated konterra configuration."""

    name: str = "konterra"
    db_name: str = "konterra"
    db_schema: str | None = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    geocoding: GeocodingConfig = field(default_factory=GeocodingConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _parse_logging(section: dict[str, Any]) -> LoggingConfig:
    log_level = str(section.get("level", "INFO")).upper()
    log_format = str(section.get("format", "text")).lower()
    if log_format not in ("text", "json"):
        raise ConfigError(
            f"Invalid konterra.logging.format: {log_format!r}. Expected 'text' or 'json'."
        )
    return LoggingConfig(level=log_level, format=log_format, log_root=section.get("log_root"))


def _parse_geocoding(section: dict[str, Any]) -> GeocodingConfig:
    try:
        timeout_seconds = float(section.get("timeout_seconds", 5.0))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid geocoding.timeout_seconds: {exc}") from exc
    if timeout_seconds <= 0:
        raise ConfigError(
            f"Invalid geocoding.timeout_seconds: {timeout_seconds!r}. Must be positive."
        )

    user_agent = str(section.get("user_agent", DEFAULT_USER_AGENT)).strip()
    if not user_agent:
        raise ConfigError("geocoding.user_agent must be a non-empty string")

    # Empty string (e.g. an unset optional secret) means "no key".
    api_key = section.get("opencage_api_key") or os.environ.get("OPENCAGE_API_KEY") or None
    if api_key is not None and not isinstance(api_key, str):
        raise ConfigError("geocoding.opencage_api_key must be a string when set")

    return GeocodingConfig(
        timeout_seconds=timeout_seconds,
        user_agent=user_agent,
        opencage_api_key=api_key.strip() if api_key else None,
    )


def _parse_enrichment_target(
    section: dict[str, Any], kind: str, default: EnrichmentTargetConfig
) -> EnrichmentTargetConfig:
    raw = section.get(kind, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"enrichment.{kind} must be a TOML table")

    batch_size = raw.get("batch_size", default.batch_size)
    delay_ms = raw.get("delay_ms", default.delay_ms)
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise ConfigError(
            f"Invalid enrichment.{kind}.batch_size: {batch_size!r}. Must be a positive integer."
        )
    if isinstance(delay_ms, bool) or not isinstance(delay_ms, int) or delay_ms < 0:
        raise ConfigError(
            f"Invalid enrichment.{kind}.delay_ms: {delay_ms!r}. Must be a non-negative integer."
        )
    return EnrichmentTargetConfig(batch_size=batch_size, delay_ms=delay_ms)


def load_config(config_dir: Path) -> KonterraConfig:
    """Load and validate a konterra.toml from *config_dir*.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or holds invalid values.
    """
    toml_path = Path(config_dir) / CONFIG_FILENAME

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)
    return _parse_config(data)


def load_config_or_default(config_dir: Path | None) -> KonterraConfig:
    """Return the config from *config_dir*, or defaults when no directory is given."""
    if config_dir is None:
        return _parse_config({})
    return load_config(config_dir)


def _parse_config(data: dict[str, Any]) -> KonterraConfig:
    # --- [konterra] section ---
    konterra_section = data.get("konterra", {})
    if not isinstance(konterra_section, dict):
        raise ConfigError("[konterra] must be a TOML table")
    name = str(konterra_section.get("name", "konterra")).strip() or "konterra"

    # --- [konterra.db] sub-section ---
    db_section = konterra_section.get("db", {})
    db_name = str(db_section.get("name", "konterra")).strip()
    if not db_name:
        raise ConfigError("konterra.db.name must be a non-empty string")

    db_schema_raw = db_section.get("schema")
    db_schema: str | None = None
    if db_schema_raw is not None:
        if not isinstance(db_schema_raw, str):
            raise ConfigError("konterra.db.schema must be a string when set")
        normalized_schema = db_schema_raw.strip()
        if _DB_SCHEMA_PATTERN.fullmatch(normalized_schema) is None:
            raise ConfigError(
                "Invalid konterra.db.schema: "
                f"{db_schema_raw!r}. Expected a valid SQL identifier-style value."
            )
        db_schema = normalized_schema

    logging_config = _parse_logging(konterra_section.get("logging", {}))
    geocoding_config = _parse_geocoding(data.get("geocoding", {}))

    # --- [enrichment.*] sections ---
    enrichment_section = data.get("enrichment", {})
    defaults = EnrichmentConfig()
    enrichment_config = EnrichmentConfig(
        contacts=_parse_enrichment_target(enrichment_section, "contacts", defaults.contacts),
        trips=_parse_enrichment_target(enrichment_section, "trips", defaults.trips),
    )

    # --- [api] section ---
    api_section = data.get("api", {})
    raw_origins = api_section.get("cors_origins", list(DEFAULT_CORS_ORIGINS))
    if not isinstance(raw_origins, list) or not all(isinstance(o, str) for o in raw_origins):
        raise ConfigError("api.cors_origins must be a list of strings")

    return KonterraConfig(
        name=name,
        db_name=db_name,
        db_schema=db_schema,
        logging=logging_config,
        geocoding=geocoding_config,
        enrichment=enrichment_config,
        cors_origins=list(raw_origins),
    )
