"""Region lifecycle and spatial queries.

RegionStore keeps the repository and the SpatialIndex in step: every
persisted region is indexed, and a region leaves the index in the same call
that removes it from the repository. Owner existence and owner-list updates
are the coordinator's job, not this store's.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from regionmap.errors import InvalidInputError, RegionNotFoundError
from regionmap.geometry import LngLat, PolygonValidator, SpatialIndex, to_lnglat
from regionmap.models import Region, RegionMatch, new_id, utcnow
from regionmap.store.repository import InMemoryRepository, Repository
from regionmap.utils.locks import KeyedLock
from regionmap.utils.logging import get_logger

logger = get_logger(__name__)

RawRing = Sequence[Sequence[float]]


def _clean_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise InvalidInputError("Region name must not be empty")
    return name.strip()


class RegionStore:
    """Owns region records and their spatial index entries."""

    def __init__(
        self,
        repository: Repository[Region] | None = None,
        index: SpatialIndex | None = None,
        validator: PolygonValidator | None = None,
    ) -> None:
        self.repository: Repository[Region] = (
            repository if repository is not None else InMemoryRepository()
        )
        self.index = index if index is not None else SpatialIndex()
        self.validator = validator if validator is not None else PolygonValidator()
        self._record_locks = KeyedLock()

    def prepare_polygon(self, raw_polygon: RawRing) -> tuple[LngLat, ...]:
        """Normalize and validate a raw ring without touching any state.

        Raises:
            InvalidCoordinatesError: If a vertex is malformed or out of range.
            InvalidPolygonError: If fewer than four points remain after closing.
        """
        return self.validator.validate(raw_polygon)

    async def rebuild_index(self) -> int:
        """Repopulate the spatial index from the repository.

        Returns:
            Number of regions indexed.
        """
        regions = await self.repository.values()
        self.index.clear()
        count = self.index_regions(regions)
        logger.info("Spatial index rebuilt", regions=count)
        return count

    def index_regions(self, regions: Iterable[Region]) -> int:
        """Insert already-persisted regions into the index.

        Returns:
            Number of regions indexed.
        """
        count = 0
        for region in regions:
            self.index.insert(region.id, region.owner_id, region.polygon)
            count += 1
        return count

    async def create(
        self,
        name: str,
        owner_id: str,
        raw_polygon: RawRing,
        *,
        region_id: str | None = None,
    ) -> Region:
        """Persist and index a new region.

        Args:
            name: Display name (trimmed, must be non-empty).
            owner_id: Owning user id; existence is checked by the caller.
            raw_polygon: Vertices as (longitude, latitude) pairs.
            region_id: Preassigned id; a fresh one if omitted.

        Returns:
            The stored region with its closed polygon.
        """
        clean_name = _clean_name(name)
        polygon = self.prepare_polygon(raw_polygon)
        region = Region(
            id=region_id or new_id(),
            name=clean_name,
            owner_id=owner_id,
            polygon=polygon,
        )

        async with self._record_locks.hold(region.id):
            await self.repository.put(region.id, region)
            try:
                self.index.insert(region.id, region.owner_id, region.polygon)
            except ValueError:
                await self.repository.delete(region.id)
                raise

        logger.info(
            "Region created",
            region_id=region.id,
            owner_id=owner_id,
            points=len(polygon),
        )
        return region

    async def update(
        self,
        region_id: str,
        name: str | None = None,
        raw_polygon: RawRing | None = None,
    ) -> Region:
        """Replace a region's name and/or polygon.

        Raises:
            RegionNotFoundError: If the region does not exist.
            InvalidInputError: If ``name`` is supplied but blank.
        """
        changes: dict[str, object] = {}
        if name is not None:
            changes["name"] = _clean_name(name)
        if raw_polygon is not None:
            changes["polygon"] = self.prepare_polygon(raw_polygon)

        async with self._record_locks.hold(region_id):
            current = await self.repository.get(region_id)
            if current is None:
                raise RegionNotFoundError(region_id)
            if not changes:
                return current

            updated = current.model_copy(update={**changes, "updated_at": utcnow()})
            await self.repository.put(region_id, updated)
            if "polygon" in changes:
                self.index.update(region_id, updated.owner_id, updated.polygon)

        logger.info("Region updated", region_id=region_id, fields=sorted(changes))
        return updated

    async def delete(self, region_id: str) -> Region:
        """Remove a region from the repository and the index.

        Raises:
            RegionNotFoundError: If the region does not exist.
        """
        async with self._record_locks.hold(region_id):
            removed = await self.repository.delete(region_id)
            if removed is None:
                raise RegionNotFoundError(region_id)
            self.index.remove(region_id)

        logger.info("Region deleted", region_id=region_id, owner_id=removed.owner_id)
        return removed

    async def restore(self, region: Region) -> None:
        """Put back a region removed earlier in the same operation."""
        async with self._record_locks.hold(region.id):
            await self.repository.put(region.id, region)
            self.index.remove(region.id)
            self.index.insert(region.id, region.owner_id, region.polygon)
        logger.info("Region restored", region_id=region.id)

    async def get(self, region_id: str) -> Region:
        """Fetch a region.

        Raises:
            RegionNotFoundError: If the region does not exist.
        """
        region = await self.repository.get(region_id)
        if region is None:
            raise RegionNotFoundError(region_id)
        return region

    async def exists(self, region_id: str) -> bool:
        return await self.repository.get(region_id) is not None

    async def list(self) -> list[Region]:
        """All regions, oldest first."""
        regions = await self.repository.values()
        return sorted(regions, key=lambda r: (r.created_at, r.id))

    async def list_by_owner(self, owner_id: str) -> list[Region]:
        """All regions owned by ``owner_id``, oldest first."""
        return [r for r in await self.list() if r.owner_id == owner_id]

    async def find_containing(self, point: Sequence[float]) -> list[Region]:
        """Regions whose polygon contains ``point`` (boundary inclusive).

        Raises:
            InvalidCoordinatesError: If the point is malformed or out of range.
        """
        lnglat = to_lnglat(point)
        ids = self.index.containing(lnglat)
        return await self._load_sorted(ids)

    async def find_near_matches(
        self,
        point: Sequence[float],
        max_distance_m: float,
        owner_id: str | None = None,
    ) -> list[RegionMatch]:
        """Regions within ``max_distance_m`` meters, nearest first.

        Raises:
            InvalidCoordinatesError: If the point is malformed or out of range.
            InvalidInputError: If the distance is negative or not finite.
        """
        lnglat = to_lnglat(point)
        if isinstance(max_distance_m, bool) or not (
            isinstance(max_distance_m, (int, float))
            and math.isfinite(max_distance_m)
            and max_distance_m >= 0
        ):
            raise InvalidInputError(
                "max_distance_m must be a finite, non-negative number",
                max_distance_m=max_distance_m,
            )

        matches: list[RegionMatch] = []
        for region_id, distance in self.index.nearest(lnglat, max_distance_m, owner_id):
            region = await self.repository.get(region_id)
            if region is not None:
                matches.append(RegionMatch(region=region, distance_m=distance))
        return matches

    async def find_near(
        self,
        point: Sequence[float],
        max_distance_m: float,
        owner_id: str | None = None,
    ) -> list[Region]:
        """Regions within ``max_distance_m`` meters, nearest first."""
        matches = await self.find_near_matches(point, max_distance_m, owner_id)
        return [m.region for m in matches]

    async def _load_sorted(self, ids: set[str]) -> list[Region]:
        regions: list[Region] = []
        for region_id in sorted(ids):
            region = await self.repository.get(region_id)
            if region is not None:
                regions.append(region)
        return regions
