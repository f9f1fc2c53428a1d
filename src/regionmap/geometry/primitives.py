"""Geographic primitives for regionmap.

Coordinates are always ``(longitude, latitude)`` pairs in decimal degrees,
matching GeoJSON ordering. Longitude lies in [-180, 180] and latitude in
[-90, 90].
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Self

from pydantic import BaseModel, Field

from regionmap.errors import InvalidCoordinatesError

LngLat = tuple[float, float]

MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0
MIN_LATITUDE = -90.0
MAX_LATITUDE = 90.0


class GeoPoint(BaseModel, frozen=True):
    """A validated position on the globe.

    Attributes:
        longitude: Degrees east of the prime meridian.
        latitude: Degrees north of the equator.
    """

    longitude: float = Field(..., ge=MIN_LONGITUDE, le=MAX_LONGITUDE)
    latitude: float = Field(..., ge=MIN_LATITUDE, le=MAX_LATITUDE)

    def to_tuple(self) -> LngLat:
        """Convert to (longitude, latitude) tuple."""
        return (self.longitude, self.latitude)

    @classmethod
    def from_tuple(cls, coord: LngLat) -> Self:
        """Create GeoPoint from (longitude, latitude) tuple."""
        return cls(longitude=coord[0], latitude=coord[1])


def in_bounds(longitude: float, latitude: float) -> bool:
    """Check that a longitude/latitude pair lies within valid ranges.

    NaN fails every comparison and is therefore out of bounds.
    """
    return (
        MIN_LONGITUDE <= longitude <= MAX_LONGITUDE
        and MIN_LATITUDE <= latitude <= MAX_LATITUDE
    )


def to_lnglat(value: Sequence[float]) -> LngLat:
    """Coerce a raw two-component sequence into a validated LngLat.

    Args:
        value: Any sequence of exactly two real numbers.

    Returns:
        The pair as a tuple of floats.

    Raises:
        InvalidCoordinatesError: If the value is not a pair of finite numbers
            or lies outside longitude/latitude bounds.
    """
    if isinstance(value, (str, bytes)) or len(value) != 2:
        raise InvalidCoordinatesError(
            "Coordinates must be a (longitude, latitude) pair", value=value
        )
    lng, lat = value
    if isinstance(lng, bool) or isinstance(lat, bool):
        raise InvalidCoordinatesError("Coordinates must be numeric", value=value)
    try:
        lng_f, lat_f = float(lng), float(lat)
    except (TypeError, ValueError) as e:
        raise InvalidCoordinatesError(
            "Coordinates must be numeric", value=value
        ) from e
    if not (math.isfinite(lng_f) and math.isfinite(lat_f)):
        raise InvalidCoordinatesError("Coordinates must be finite", value=value)
    if not in_bounds(lng_f, lat_f):
        raise InvalidCoordinatesError(
            "Coordinates out of range: longitude must be in [-180, 180] "
            "and latitude in [-90, 90]",
            longitude=lng_f,
            latitude=lat_f,
        )
    return (lng_f, lat_f)
