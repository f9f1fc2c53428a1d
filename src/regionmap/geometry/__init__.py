"""Geometry module for regionmap.

This package provides coordinate primitives, ring normalization and
validation, spherical distance math, and the in-memory spatial index used
for containment and proximity queries.

Key Components:
    - Primitives: LngLat pairs, GeoPoint model, bounds checking
    - Polygon: normalize_ring() and PolygonValidator
    - Spherical: ray casting and great-circle distances
    - SpatialIndex: containment and within-distance queries

Example:
    from regionmap.geometry import PolygonValidator, SpatialIndex

    ring = PolygonValidator().validate([(0, 0), (1, 0), (1, 1), (0, 1)])

    index = SpatialIndex()
    index.insert("region-1", "user-1", ring)
    index.containing((0.5, 0.5))  # {"region-1"}
"""

from regionmap.geometry.polygon import (
    MIN_CLOSED_RING_POINTS,
    PolygonValidator,
    is_closed,
    normalize_ring,
)
from regionmap.geometry.primitives import GeoPoint, LngLat, in_bounds, to_lnglat
from regionmap.geometry.spatial_index import BoundingBox, IndexEntry, SpatialIndex
from regionmap.geometry.spherical import (
    EARTH_RADIUS_M,
    distance_to_ring_m,
    haversine_m,
    point_in_ring,
    point_on_boundary,
    point_to_arc_m,
)

__all__ = [
    "EARTH_RADIUS_M",
    "MIN_CLOSED_RING_POINTS",
    "BoundingBox",
    "GeoPoint",
    "IndexEntry",
    "LngLat",
    "PolygonValidator",
    "SpatialIndex",
    "distance_to_ring_m",
    "haversine_m",
    "in_bounds",
    "is_closed",
    "normalize_ring",
    "point_in_ring",
    "point_on_boundary",
    "point_to_arc_m",
    "to_lnglat",
]
