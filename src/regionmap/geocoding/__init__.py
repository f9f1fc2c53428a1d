"""Geocoding resolver abstraction for regionmap.

Public API:
    - Protocol: GeocodingResolver
    - Providers: GoogleGeocoder
    - Failure containment: CircuitBreaker, BreakerPolicy, BreakerState

Usage:
    from regionmap.geocoding import GoogleGeocoder

    async with GoogleGeocoder() as geocoder:
        lng, lat = await geocoder.resolve_coordinates("Av. Paulista, 1000")
"""

from regionmap.geocoding.circuit_breaker import (
    BreakerPolicy,
    BreakerState,
    CircuitBreaker,
)
from regionmap.geocoding.google_client import GoogleGeocoder
from regionmap.geocoding.protocol import GeocodingResolver

__all__ = [
    "BreakerPolicy",
    "BreakerState",
    "CircuitBreaker",
    "GeocodingResolver",
    "GoogleGeocoder",
]
