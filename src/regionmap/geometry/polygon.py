"""Polygon ring normalization and validation.

Rings are closed by appending a copy of the first vertex when the last
vertex differs from it. Equality is exact, component by component; no
tolerance is applied and no coordinate is rounded.
"""

from __future__ import annotations

from collections.abc import Sequence

from regionmap.errors import InvalidPolygonError, RegionMapError
from regionmap.geometry.primitives import LngLat, to_lnglat

MIN_CLOSED_RING_POINTS = 4


def normalize_ring(ring: Sequence[LngLat]) -> list[LngLat]:
    """Close a coordinate ring.

    Args:
        ring: Ordered vertices. An empty ring is returned unchanged.

    Returns:
        A new list whose last point equals its first. Already-closed rings
        come back with the same length.

    Example:
        >>> normalize_ring([(0, 0), (1, 0), (1, 1)])
        [(0, 0), (1, 0), (1, 1), (0, 0)]
    """
    points: list[LngLat] = [(p[0], p[1]) for p in ring]
    if not points:
        return points

    if not is_closed(points):
        first_lng, first_lat = points[0]
        points.append((first_lng, first_lat))
    return points


def is_closed(ring: Sequence[LngLat]) -> bool:
    """Check whether a ring's first and last vertices are identical."""
    if not ring:
        return False
    return ring[0][0] == ring[-1][0] and ring[0][1] == ring[-1][1]


class PolygonValidator:
    """Validator turning raw vertex sequences into canonical closed rings.

    The validator is stateless: every vertex is range-checked, the ring is
    closed, and the closed ring must hold at least four points.
    """

    def __init__(self, min_points: int = MIN_CLOSED_RING_POINTS) -> None:
        self.min_points = min_points

    def validate(self, raw_ring: Sequence[Sequence[float]]) -> tuple[LngLat, ...]:
        """Validate and close a ring.

        Args:
            raw_ring: Vertices as (longitude, latitude) pairs.

        Returns:
            The closed ring as an immutable tuple.

        Raises:
            InvalidCoordinatesError: If any vertex is malformed or out of range.
            InvalidPolygonError: If the closed ring has fewer than
                ``min_points`` points.
        """
        if isinstance(raw_ring, (str, bytes)):
            raise InvalidPolygonError("Polygon must be a sequence of vertices")

        vertices = [to_lnglat(v) for v in raw_ring]
        closed = normalize_ring(vertices)

        if len(closed) < self.min_points:
            raise InvalidPolygonError(
                f"Polygon must have at least {self.min_points} points "
                "after closing the ring",
                points=len(closed),
            )
        return tuple(closed)

    def is_valid(self, raw_ring: Sequence[Sequence[float]]) -> bool:
        """Check a ring without raising.

        Convenience method that wraps validate().
        """
        try:
            self.validate(raw_ring)
        except RegionMapError:
            return False
        return True

