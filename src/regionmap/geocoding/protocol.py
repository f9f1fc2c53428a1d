"""Geocoding resolver protocol for regionmap.

UserStore depends only on this protocol, so tests can pass any object with
the two async methods below and production code can pass the Google
adapter.
"""

from __future__ import annotations

from typing import Protocol

from regionmap.geometry.primitives import LngLat


class GeocodingResolver(Protocol):
    """Protocol for translating between addresses and coordinates.

    Implementations must raise ``ResolutionError`` (or a subclass) when the
    upstream yields no result or fails. No retry policy is implied by the
    protocol.
    """

    async def resolve_coordinates(self, address: str) -> LngLat:
        """Resolve a street address to a (longitude, latitude) pair.

        Args:
            address: Free-form street address.

        Returns:
            Position as (longitude, latitude).

        Raises:
            ResolutionError: If no result is found or the upstream call fails.
        """
        ...

    async def resolve_address(self, coordinates: LngLat) -> str:
        """Resolve a (longitude, latitude) pair to a formatted address.

        Args:
            coordinates: Position as (longitude, latitude).

        Returns:
            Formatted street address.

        Raises:
            ResolutionError: If no result is found or the upstream call fails.
        """
        ...
