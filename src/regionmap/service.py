"""Service facade consumed by transport layers.

`RegionMapService` is the narrow interface the surrounding HTTP or CLI layer
calls into. It converts untyped payloads into request structs, tags every
call with correlation IDs, and routes cross-entity writes through the
ConsistencyCoordinator.

`build_service` wires the object graph explicitly; nothing in the core
reaches for module-level singletons.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from regionmap.config import Settings, settings as default_settings
from regionmap.coordinator import ConsistencyCoordinator
from regionmap.errors import InvalidCoordinatesError, InvalidInputError
from regionmap.geocoding.protocol import GeocodingResolver
from regionmap.models import (
    CreateRegionRequest,
    CreateUserRequest,
    NearQuery,
    Region,
    RegionMatch,
    UpdateRegionRequest,
    UpdateUserRequest,
    User,
    UserPage,
)
from regionmap.store.regions import RegionStore
from regionmap.store.repository import InMemoryRepository, JsonFileRepository
from regionmap.store.users import UserStore
from regionmap.utils.logging import (
    configure_logging,
    correlation_scope,
    get_logger,
)

logger = get_logger(__name__)

RequestT = TypeVar("RequestT", bound=BaseModel)

_COORDINATE_FIELDS = frozenset({"coordinates", "polygon", "longitude", "latitude"})


def parse_request(
    model_type: type[RequestT], payload: RequestT | Mapping[str, Any]
) -> RequestT:
    """Convert a payload into a request struct.

    Shape errors on coordinate fields become InvalidCoordinatesError; every
    other shape error (missing, unknown or mistyped field) becomes
    InvalidInputError.
    """
    if isinstance(payload, model_type):
        return payload
    try:
        return model_type.model_validate(payload)
    except ValidationError as e:
        fields = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        summary = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        if fields and fields <= _COORDINATE_FIELDS:
            raise InvalidCoordinatesError(
                f"Malformed coordinates: {summary}"
            ) from e
        raise InvalidInputError(
            f"Invalid {model_type.__name__}: {summary}"
        ) from e


class RegionMapService:
    """Async entry point for user and region operations.

    Usage:
        service = build_service(resolver=my_resolver)
        user = await service.create_user({"name": "Ana", "email": "a@x.io",
                                          "address": "Av. Paulista, 1000"})
        region = await service.create_region({"name": "Centro",
                                              "owner_id": user.id,
                                              "polygon": ring})
        await service.find_regions_containing(-46.63, -23.55)
    """

    def __init__(
        self,
        users: UserStore,
        regions: RegionStore,
        coordinator: ConsistencyCoordinator | None = None,
        *,
        default_page_size: int = 10,
    ) -> None:
        self.users = users
        self.regions = regions
        self.coordinator = (
            coordinator
            if coordinator is not None
            else ConsistencyCoordinator(users, regions)
        )
        self.default_page_size = default_page_size

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(
        self, request: CreateUserRequest | Mapping[str, Any]
    ) -> User:
        req = parse_request(CreateUserRequest, request)
        with correlation_scope(request_id=uuid.uuid4().hex, operation="create_user"):
            return await self.users.create(
                req.name, req.email, address=req.address, coordinates=req.coordinates
            )

    async def update_user(
        self, user_id: str, request: UpdateUserRequest | Mapping[str, Any]
    ) -> User:
        req = parse_request(UpdateUserRequest, request)
        with correlation_scope(
            request_id=uuid.uuid4().hex, operation="update_user", owner_id=user_id
        ):
            return await self.users.update(
                user_id,
                name=req.name,
                email=req.email,
                address=req.address,
                coordinates=req.coordinates,
            )

    async def delete_user(self, user_id: str) -> User:
        """Delete a user and cascade to the regions it owns."""
        with correlation_scope(
            request_id=uuid.uuid4().hex, operation="delete_user", owner_id=user_id
        ):
            return await self.coordinator.delete_user(user_id)

    async def get_user(self, user_id: str) -> User:
        return await self.users.get(user_id)

    async def list_users(
        self,
        page: int = 1,
        page_size: int | None = None,
        name_filter: str | None = None,
        email_filter: str | None = None,
    ) -> UserPage:
        return await self.users.list(
            page,
            page_size if page_size is not None else self.default_page_size,
            name_filter=name_filter,
            email_filter=email_filter,
        )

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    async def create_region(
        self, request: CreateRegionRequest | Mapping[str, Any]
    ) -> Region:
        req = parse_request(CreateRegionRequest, request)
        with correlation_scope(
            request_id=uuid.uuid4().hex, operation="create_region", owner_id=req.owner_id
        ):
            return await self.coordinator.create_region(
                req.name, req.owner_id, req.polygon
            )

    async def update_region(
        self, region_id: str, request: UpdateRegionRequest | Mapping[str, Any]
    ) -> Region:
        req = parse_request(UpdateRegionRequest, request)
        with correlation_scope(request_id=uuid.uuid4().hex, operation="update_region"):
            return await self.coordinator.update_region(
                region_id, name=req.name, raw_polygon=req.polygon
            )

    async def delete_region(self, region_id: str) -> Region:
        with correlation_scope(request_id=uuid.uuid4().hex, operation="delete_region"):
            return await self.coordinator.delete_region(region_id)

    async def get_region(self, region_id: str) -> Region:
        return await self.regions.get(region_id)

    async def list_regions(self) -> list[Region]:
        return await self.regions.list()

    async def find_regions_containing(
        self, longitude: float, latitude: float
    ) -> list[Region]:
        """Regions whose polygon contains the point (boundary inclusive)."""
        return await self.regions.find_containing((longitude, latitude))

    async def find_regions_near(
        self,
        longitude: float,
        latitude: float,
        max_distance_m: float,
        owner_only: bool = False,
        owner_id: str | None = None,
    ) -> list[Region]:
        """Regions within ``max_distance_m`` meters of the point, nearest first.

        With ``owner_only`` the search is restricted to regions owned by
        ``owner_id``, which is then required.
        """
        matches = await self.find_regions_near_with_distance(
            longitude, latitude, max_distance_m, owner_only=owner_only, owner_id=owner_id
        )
        return [m.region for m in matches]

    async def find_regions_near_with_distance(
        self,
        longitude: float,
        latitude: float,
        max_distance_m: float,
        owner_only: bool = False,
        owner_id: str | None = None,
    ) -> list[RegionMatch]:
        """Like `find_regions_near`, but also reports each distance in meters."""
        query = parse_request(
            NearQuery,
            {
                "longitude": longitude,
                "latitude": latitude,
                "max_distance_m": max_distance_m,
                "owner_only": owner_only,
                "owner_id": owner_id,
            },
        )
        if query.owner_only and not query.owner_id:
            raise InvalidInputError("owner_only requires owner_id")
        owner_filter = query.owner_id if query.owner_only else None
        return await self.regions.find_near_matches(
            (query.longitude, query.latitude), query.max_distance_m, owner_filter
        )


def build_service(
    settings: Settings | None = None,
    resolver: GeocodingResolver | None = None,
) -> RegionMapService:
    """Wire a RegionMapService from settings.

    Args:
        settings: Configuration; the process settings if omitted.
        resolver: Geocoding collaborator; a GoogleGeocoder if omitted
            (requires GOOGLE_API_KEY).

    Returns:
        A service whose stores use JSON snapshots under STORAGE_DIR, or
        in-memory repositories when STORAGE_DIR is unset.

    """
    cfg = settings or default_settings
    configure_logging(cfg.LOG_LEVEL, cfg.LOG_FORMAT)

    if resolver is None:
        from regionmap.geocoding.google_client import GoogleGeocoder

        resolver = GoogleGeocoder(settings=cfg)

    if cfg.STORAGE_DIR is not None:
        user_repo: InMemoryRepository[User] = JsonFileRepository(
            cfg.STORAGE_DIR / "users.json", User
        )
        region_repo: InMemoryRepository[Region] = JsonFileRepository(
            cfg.STORAGE_DIR / "regions.json", Region
        )
    else:
        user_repo = InMemoryRepository()
        region_repo = InMemoryRepository()

    users = UserStore(
        resolver, user_repo, resolve_timeout=cfg.GEOCODER_TIMEOUT_SECONDS
    )
    regions = RegionStore(region_repo)
    regions.index_regions(region_repo.snapshot())
    logger.info(
        "Service built",
        storage=str(cfg.STORAGE_DIR) if cfg.STORAGE_DIR else "memory",
        resolver=type(resolver).__name__,
    )
    return RegionMapService(
        users, regions, default_page_size=cfg.DEFAULT_PAGE_SIZE
    )
