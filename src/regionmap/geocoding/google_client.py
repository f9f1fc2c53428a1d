"""Google Geocoding API resolver for regionmap.

This module implements the GeocodingResolver protocol against the Google
Geocoding JSON API.

- Uses httpx.AsyncClient with a per-request timeout
- Implements rate limiting via aiolimiter
- Implements optional retry of transport errors via tenacity
  (GEOCODER_MAX_ATTEMPTS, default 1 = no retry)
- Guards the upstream with a circuit breaker

Google reports positions as ``lat, lng``; every value leaving this module is
a ``(longitude, latitude)`` pair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Self

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from regionmap.config import Settings, settings
from regionmap.errors import ResolutionError
from regionmap.geocoding.circuit_breaker import BreakerPolicy, CircuitBreaker
from regionmap.geometry.primitives import LngLat

logger = logging.getLogger(__name__)

STATUS_OK = "OK"
STATUS_ZERO_RESULTS = "ZERO_RESULTS"


@dataclass
class GoogleGeocoder:
    """Geocoding resolver backed by the Google Geocoding API.

    Usage:
        async with GoogleGeocoder() as geocoder:
            lng, lat = await geocoder.resolve_coordinates("1600 Amphitheatre Pkwy")
            address = await geocoder.resolve_address((lng, lat))
    """

    settings: Settings = field(default_factory=lambda: settings)
    client: httpx.AsyncClient | None = None

    # Internal state (initialized in __post_init__)
    _api_key: str = field(init=False, repr=False)
    _client: httpx.AsyncClient = field(init=False, repr=False)
    _owns_client: bool = field(init=False, repr=False)
    _limiter: AsyncLimiter = field(init=False, repr=False)
    _circuit_breaker: CircuitBreaker = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialize the HTTP client, rate limiter and circuit breaker."""
        self._api_key = self.settings.require_google_key()
        self._owns_client = self.client is None
        self._client = self.client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.GEOCODER_TIMEOUT_SECONDS)
        )
        self._limiter = AsyncLimiter(
            max_rate=self.settings.GEOCODER_RPM,
            time_period=60,
        )
        self._circuit_breaker = CircuitBreaker(
            upstream_name="google",
            policy=BreakerPolicy(
                failure_threshold=self.settings.GEOCODER_FAILURE_THRESHOLD,
                cooldown_seconds=self.settings.GEOCODER_COOLDOWN_SECONDS,
            ),
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Breaker guarding the upstream (exposed for inspection)."""
        return self._circuit_breaker

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this resolver created it."""
        if self._owns_client:
            await self._client.aclose()

    async def resolve_coordinates(self, address: str) -> LngLat:
        """Resolve an address to (longitude, latitude).

        Raises:
            ResolutionError: If Google returns no result or the call fails.
        """
        first = await self._geocode({"address": address}, query=address)
        try:
            location = first["geometry"]["location"]
            lng, lat = float(location["lng"]), float(location["lat"])
        except (KeyError, TypeError, ValueError) as e:
            raise ResolutionError(
                "Malformed geocoding result: missing geometry.location",
                query=address,
                cause=e,
            ) from e
        logger.debug("Resolved address %r to (%s, %s)", address, lng, lat)
        return (lng, lat)

    async def resolve_address(self, coordinates: LngLat) -> str:
        """Resolve (longitude, latitude) to a formatted address.

        Raises:
            ResolutionError: If Google returns no result or the call fails.
        """
        lng, lat = coordinates
        query = f"{lat},{lng}"
        first = await self._geocode({"latlng": query}, query=query)
        address = first.get("formatted_address")
        if not isinstance(address, str) or not address.strip():
            raise ResolutionError(
                "No address found for these coordinates", query=query
            )
        logger.debug("Resolved (%s, %s) to address %r", lng, lat, address)
        return address

    async def _geocode(self, params: dict[str, str], *, query: str) -> dict[str, Any]:
        """Call the API and return the first result.

        Transport and upstream-status failures trip the circuit breaker;
        an empty result set does not.
        """
        self._circuit_breaker.check()

        try:
            async with self._limiter:
                payload = await self._get_with_retry({**params, "key": self._api_key})
        except (httpx.TransportError, httpx.HTTPStatusError) as e:
            self._circuit_breaker.record_failure()
            raise ResolutionError(
                f"Geocoding request failed: {e}", query=query, cause=e
            ) from e
        except ValueError as e:
            # Invalid JSON body
            self._circuit_breaker.record_failure()
            raise ResolutionError(
                "Geocoding response was not valid JSON", query=query, cause=e
            ) from e
        except BaseException:
            # Cancelled by the caller's timeout; count it and free the probe slot
            self._circuit_breaker.record_failure()
            logger.warning("Geocoding request abandoned for %r", query)
            raise

        status = payload.get("status")
        if status == STATUS_ZERO_RESULTS:
            self._circuit_breaker.record_success()
            raise ResolutionError("No geocoding result", query=query)
        if status != STATUS_OK:
            self._circuit_breaker.record_failure()
            detail = payload.get("error_message") or "no detail"
            raise ResolutionError(
                f"Geocoding upstream returned status {status}: {detail}",
                query=query,
            )

        self._circuit_breaker.record_success()
        results = payload.get("results") or []
        if not results or not isinstance(results[0], dict):
            raise ResolutionError("No geocoding result", query=query)
        return results[0]

    async def _get_with_retry(self, params: dict[str, str]) -> dict[str, Any]:
        """GET the endpoint, retrying transport errors up to the configured limit."""
        async for attempt in AsyncRetrying(
            wait=wait_random_exponential(min=0.5, max=5),
            stop=stop_after_attempt(max(1, self.settings.GEOCODER_MAX_ATTEMPTS)),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                response = await self._client.get(
                    self.settings.GEOCODER_BASE_URL, params=params
                )
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise ValueError("Geocoding response body is not an object")
                return data
        raise AssertionError("unreachable")  # pragma: no cover
