"""External geocoder client.

Resolves free-form place queries ("Lisbon, Portugal") into coordinates via a
third-party provider. OpenCage is used when an API key is configured; the
free Nominatim service is the fallback. Callers see the same shape either way:
``Geocoder.geocode()`` returns a ``GeocodeResult`` or ``None``.

Geocoding is best-effort. Transport errors, non-2xx responses, malformed
payloads, and timeouts all collapse to ``None`` inside ``Geocoder.geocode``;
providers themselves raise ``GeocodingError`` so the reason can be logged.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from konterra.config import DEFAULT_USER_AGENT, GeocodingConfig

logger = logging.getLogger(__name__)

OPENCAGE_GEOCODE_URL = "https://api.opencagedata.com/geocode/v1/json"
NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_TIMEOUT_SECONDS = 5.0


class GeocodingError(RuntimeError):
    """Raised by providers when a lookup cannot produce a usable answer."""


class GeocodeResult(BaseModel):
    """A resolved location."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    formatted: str


class GeocodingProvider(abc.ABC):
    """Provider contract: one lookup, ``None`` when the query has no match."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Stable provider name."""
        ...

    @abc.abstractmethod
    async def lookup(self, query: str) -> GeocodeResult | None:
        """Resolve *query*; raise ``GeocodingError`` or ``httpx.HTTPError`` on failure."""
        ...

    @abc.abstractmethod
    async def shutdown(self) -> None:
        """Release provider resources."""
        ...


class _HttpProvider(GeocodingProvider):
    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_http_client = http_client is None
        self._http_client = (
            http_client
            if http_client is not None
            else httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        )

    async def shutdown(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def _get_json(self, url: str, params: dict[str, Any], headers: dict[str, str]) -> Any:
        response = await self._http_client.get(url, params=params, headers=headers)
        if response.status_code < 200 or response.status_code >= 300:
            raise GeocodingError(f"{self.name} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise GeocodingError(f"{self.name} returned invalid JSON") from exc


class OpenCageProvider(_HttpProvider):
    """OpenCage forward geocoding (requires an API key)."""

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key.strip():
            raise ValueError("OpenCage api_key must be a non-empty string")
        super().__init__(timeout_seconds=timeout_seconds, http_client=http_client)
        self._api_key = api_key.strip()

    @property
    def name(self) -> str:
        return "opencage"

    async def lookup(self, query: str) -> GeocodeResult | None:
        payload = await self._get_json(
            OPENCAGE_GEOCODE_URL,
            params={"q": query, "key": self._api_key, "limit": 1},
            headers={"Accept": "application/json"},
        )
        if not isinstance(payload, dict):
            raise GeocodingError("opencage payload must be a JSON object")
        results = payload.get("results")
        if not isinstance(results, list):
            raise GeocodingError("opencage payload has no results list")
        if not results:
            return None

        first = results[0]
        try:
            geometry = first["geometry"]
            return GeocodeResult(
                lat=float(geometry["lat"]),
                lng=float(geometry["lng"]),
                formatted=str(first.get("formatted") or query),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingError(f"opencage result is malformed: {exc}") from exc


class NominatimProvider(_HttpProvider):
    """OpenStreetMap Nominatim search (free, rate-limited, needs a User-Agent)."""

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout_seconds=timeout_seconds, http_client=http_client)
        self._user_agent = user_agent

    @property
    def name(self) -> str:
        return "nominatim"

    async def lookup(self, query: str) -> GeocodeResult | None:
        payload = await self._get_json(
            NOMINATIM_SEARCH_URL,
            params={"format": "json", "q": query, "limit": 1},
            headers={"User-Agent": self._user_agent, "Accept": "application/json"},
        )
        if not isinstance(payload, list):
            raise GeocodingError("nominatim payload must be a JSON array")
        if not payload:
            return None

        first = payload[0]
        try:
            # Nominatim returns coordinates as decimal strings
            return GeocodeResult(
                lat=float(first["lat"]),
                lng=float(first["lon"]),
                formatted=str(first.get("display_name") or query),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingError(f"nominatim result is malformed: {exc}") from exc


class Geocoder:
    """Best-effort geocoding facade with a hard per-call timeout."""

    def __init__(
        self,
        provider: GeocodingProvider,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._provider = provider
        self._timeout_seconds = timeout_seconds

    @property
    def provider_name(self) -> str:
        return self._provider.name

    async def geocode(self, query: str) -> GeocodeResult | None:
        """Return the best match for *query*, or ``None`` on any miss or failure."""
        query = query.strip()
        if not query:
            return None
        try:
            return await asyncio.wait_for(
                self._provider.lookup(query), timeout=self._timeout_seconds
            )
        except TimeoutError:
            logger.info(
                "Geocoding timed out after %.1fs (provider=%s)",
                self._timeout_seconds,
                self._provider.name,
            )
        except (httpx.HTTPError, GeocodingError, ValueError) as exc:
            logger.info("Geocoding failed (provider=%s): %s", self._provider.name, exc)
        return None

    async def shutdown(self) -> None:
        await self._provider.shutdown()


def build_geocoder(
    config: GeocodingConfig | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> Geocoder:
    """Build a ``Geocoder`` for *config*, choosing OpenCage when a key is set."""
    config = config or GeocodingConfig()
    provider: GeocodingProvider
    if config.opencage_api_key:
        provider = OpenCageProvider(
            api_key=config.opencage_api_key,
            timeout_seconds=config.timeout_seconds,
            http_client=http_client,
        )
    else:
        provider = NominatimProvider(
            user_agent=config.user_agent,
            timeout_seconds=config.timeout_seconds,
            http_client=http_client,
        )
    logger.debug("Geocoder provider selected: %s", provider.name)
    return Geocoder(provider, timeout_seconds=config.timeout_seconds)
