"""In-memory spatial index over region polygons.

The index is a linear scan with a bounding-box prefilter for containment.
The prefilter only skips rings whose box cannot hold the point, so it never
changes query results. A single re-entrant lock serializes mutations and
queries.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Sequence
from dataclasses import dataclass

from regionmap.geometry.primitives import LngLat
from regionmap.geometry.spherical import distance_to_ring_m, point_in_ring

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned longitude/latitude box."""

    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float

    @classmethod
    def of(cls, ring: Sequence[LngLat]) -> BoundingBox:
        """Compute the box enclosing every vertex of a ring."""
        lngs = [p[0] for p in ring]
        lats = [p[1] for p in ring]
        return cls(min(lngs), min(lats), max(lngs), max(lats))

    def contains(self, point: LngLat) -> bool:
        """Check if a point is inside the box (inclusive of edges)."""
        lng, lat = point
        return (
            self.min_lng <= lng <= self.max_lng
            and self.min_lat <= lat <= self.max_lat
        )


@dataclass(frozen=True)
class IndexEntry:
    """One indexed polygon.

    Attributes:
        region_id: Key of the entry.
        owner_id: Owning user, used by the proximity owner filter.
        ring: Closed ring of (longitude, latitude) vertices.
        bbox: Bounding box of the ring.
    """

    region_id: str
    owner_id: str
    ring: tuple[LngLat, ...]
    bbox: BoundingBox


def _make_entry(region_id: str, owner_id: str, ring: Sequence[LngLat]) -> IndexEntry:
    if not ring:
        raise ValueError(f"Cannot index empty ring for region {region_id!r}")
    return IndexEntry(
        region_id=region_id,
        owner_id=owner_id,
        ring=tuple(ring),
        bbox=BoundingBox.of(ring),
    )


class SpatialIndex:
    """Polygon index answering containment and proximity queries.

    Usage:
        index = SpatialIndex()
        index.insert("r1", "u1", [(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)])

        index.containing((0.5, 0.5))  # {"r1"}
        index.within((2.0, 2.0), max_distance_m=200_000)  # {"r1"}
    """

    def __init__(self) -> None:
        self._entries: dict[str, IndexEntry] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, region_id: object) -> bool:
        with self._lock:
            return region_id in self._entries

    def insert(self, region_id: str, owner_id: str, ring: Sequence[LngLat]) -> None:
        """Add a polygon to the index.

        Args:
            region_id: Unique key for the polygon.
            owner_id: Owning user id.
            ring: Closed ring; the caller is responsible for normalization.

        Raises:
            ValueError: If ``region_id`` is already indexed or the ring is empty.
        """
        entry = _make_entry(region_id, owner_id, ring)
        with self._lock:
            if region_id in self._entries:
                raise ValueError(f"Region {region_id!r} is already indexed")
            self._entries[region_id] = entry
        logger.debug("Indexed region %s (%d points)", region_id, len(entry.ring))

    def remove(self, region_id: str) -> bool:
        """Remove a polygon from the index.

        Returns:
            True if the entry existed, False otherwise.
        """
        with self._lock:
            removed = self._entries.pop(region_id, None) is not None
        if removed:
            logger.debug("Removed region %s from index", region_id)
        return removed

    def update(self, region_id: str, owner_id: str, ring: Sequence[LngLat]) -> None:
        """Replace a polygon's geometry.

        A rejected ring leaves the existing entry in place.

        Raises:
            ValueError: If the ring is empty.
        """
        entry = _make_entry(region_id, owner_id, ring)
        with self._lock:
            self._entries[region_id] = entry
        logger.debug("Re-indexed region %s (%d points)", region_id, len(entry.ring))

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def containing(self, point: LngLat) -> set[str]:
        """Return ids of polygons containing ``point`` (boundary inclusive)."""
        with self._lock:
            return {
                entry.region_id
                for entry in self._entries.values()
                if entry.bbox.contains(point) and point_in_ring(point, entry.ring)
            }

    def nearest(
        self,
        point: LngLat,
        max_distance_m: float,
        owner_id: str | None = None,
    ) -> list[tuple[str, float]]:
        """Return (region_id, distance) pairs within ``max_distance_m``.

        Results are ordered by ascending distance, ties broken by region id.

        Args:
            point: Query position.
            max_distance_m: Inclusive distance limit in meters.
            owner_id: If given, only polygons owned by this user are considered.
        """
        with self._lock:
            candidates = [
                entry
                for entry in self._entries.values()
                if owner_id is None or entry.owner_id == owner_id
            ]
            hits: list[tuple[str, float]] = []
            for entry in candidates:
                distance = distance_to_ring_m(point, entry.ring)
                if distance <= max_distance_m:
                    hits.append((entry.region_id, distance))
        hits.sort(key=lambda hit: (hit[1], hit[0]))
        return hits

    def within(
        self,
        point: LngLat,
        max_distance_m: float,
        owner_id: str | None = None,
    ) -> set[str]:
        """Return ids of polygons within ``max_distance_m`` meters of ``point``."""
        return {region_id for region_id, _ in self.nearest(point, max_distance_m, owner_id)}

    def distance_to(self, region_id: str, point: LngLat) -> float:
        """Distance in meters from ``point`` to one indexed polygon.

        Returns ``math.inf`` if the region is not indexed.
        """
        with self._lock:
            entry = self._entries.get(region_id)
        if entry is None:
            return math.inf
        return distance_to_ring_m(point, entry.ring)
