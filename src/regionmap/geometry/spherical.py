"""Point-in-polygon and great-circle distance functions.

Containment uses planar even-odd ray casting over (longitude, latitude),
which matches how rings are drawn on a map. Distances are measured on a
sphere of mean Earth radius and returned in meters.

Points that lie exactly on an edge or a vertex of a ring count as inside.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from regionmap.geometry.primitives import LngLat

EARTH_RADIUS_M = 6_371_008.8  # IUGG mean radius

_COLLINEAR_TOLERANCE = 1e-12

Vector3 = tuple[float, float, float]


def haversine_m(a: LngLat, b: LngLat) -> float:
    """Great-circle distance between two positions in meters."""
    lng1, lat1 = map(math.radians, a)
    lng2, lat2 = map(math.radians, b)
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def _to_unit_vector(p: LngLat) -> Vector3:
    lng, lat = map(math.radians, p)
    cos_lat = math.cos(lat)
    return (cos_lat * math.cos(lng), cos_lat * math.sin(lng), math.sin(lat))


def _cross(u: Vector3, v: Vector3) -> Vector3:
    return (
        u[1] * v[2] - u[2] * v[1],
        u[2] * v[0] - u[0] * v[2],
        u[0] * v[1] - u[1] * v[0],
    )


def _dot(u: Vector3, v: Vector3) -> float:
    return u[0] * v[0] + u[1] * v[1] + u[2] * v[2]


def _norm(u: Vector3) -> float:
    return math.sqrt(_dot(u, u))


def point_to_arc_m(p: LngLat, a: LngLat, b: LngLat) -> float:
    """Shortest great-circle distance from ``p`` to the arc ``a``-``b``.

    If the perpendicular foot of ``p`` on the great circle through ``a`` and
    ``b`` falls between them, the cross-track distance is returned;
    otherwise the distance to the nearer endpoint.

    Args:
        p: Query position.
        a: Arc start.
        b: Arc end.

    Returns:
        Distance in meters.
    """
    va, vb, vp = _to_unit_vector(a), _to_unit_vector(b), _to_unit_vector(p)
    normal = _cross(va, vb)
    normal_len = _norm(normal)

    # Degenerate arc (identical or antipodal endpoints)
    if normal_len < _COLLINEAR_TOLERANCE:
        return min(haversine_m(p, a), haversine_m(p, b))

    n = (normal[0] / normal_len, normal[1] / normal_len, normal[2] / normal_len)
    along = _dot(vp, n)
    foot = (vp[0] - along * n[0], vp[1] - along * n[1], vp[2] - along * n[2])

    # The foot lies on the minor arc iff it is "after" a and "before" b
    # when walking around the normal.
    if _dot(_cross(va, foot), n) >= 0 and _dot(_cross(foot, vb), n) >= 0:
        return EARTH_RADIUS_M * math.asin(min(1.0, abs(along)))

    return min(haversine_m(p, a), haversine_m(p, b))


def _on_segment(p: LngLat, a: LngLat, b: LngLat) -> bool:
    """Check whether ``p`` lies on the planar segment ``a``-``b``."""
    px, py = p
    ax, ay = a
    bx, by = b
    if not (min(ax, bx) <= px <= max(ax, bx) and min(ay, by) <= py <= max(ay, by)):
        return False
    cross = (bx - ax) * (py - ay) - (by - ay) * (px - ax)
    return math.isclose(cross, 0.0, abs_tol=_COLLINEAR_TOLERANCE)


def point_on_boundary(p: LngLat, ring: Sequence[LngLat]) -> bool:
    """Check whether ``p`` lies on any edge of a closed ring."""
    return any(_on_segment(p, ring[i], ring[i + 1]) for i in range(len(ring) - 1))


def point_in_ring(p: LngLat, ring: Sequence[LngLat]) -> bool:
    """Even-odd ray casting test against a closed ring.

    Boundary points (edges and vertices) are reported as inside.

    Args:
        p: Query position as (longitude, latitude).
        ring: Closed ring (first vertex repeated at the end).

    Returns:
        True if the point is inside or on the boundary.
    """
    if len(ring) < 2:
        return False
    if point_on_boundary(p, ring):
        return True

    x, y = p
    inside = False
    for i in range(len(ring) - 1):
        x1, y1 = ring[i]
        x2, y2 = ring[i + 1]
        if (y1 > y) != (y2 > y):
            x_cross = x1 + (y - y1) * (x2 - x1) / (y2 - y1)
            if x < x_cross:
                inside = not inside
    return inside


def distance_to_ring_m(p: LngLat, ring: Sequence[LngLat]) -> float:
    """Distance from ``p`` to a polygon in meters.

    Zero when ``p`` is inside or on the boundary; otherwise the distance to
    the nearest edge.
    """
    if not ring:
        return math.inf
    if point_in_ring(p, ring):
        return 0.0
    if len(ring) == 1:
        return haversine_m(p, ring[0])
    return min(point_to_arc_m(p, ring[i], ring[i + 1]) for i in range(len(ring) - 1))
