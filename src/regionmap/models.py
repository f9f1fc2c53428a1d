"""Domain records and request structs for regionmap.

Records (`User`, `Region`) are immutable; stores produce new versions with
``model_copy(update=...)``. Request structs describe the shape of inbound
payloads and reject unknown fields. Range and business-rule checks happen
in the stores so that each failure maps to a specific error kind.
"""

from __future__ import annotations

import math
import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from regionmap.geometry.primitives import LngLat


def new_id() -> str:
    """Generate an opaque record identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


# =============================================================================
# Records
# =============================================================================


class User(BaseModel, frozen=True):
    """An account with a location and an owner-list of regions.

    Exactly one of ``address``/``coordinates`` is supplied by the caller;
    the other is derived through the geocoding resolver before the record
    is stored.
    """

    id: str = Field(default_factory=new_id)
    name: str
    email: str
    address: str | None = None
    coordinates: LngLat | None = None
    region_ids: tuple[str, ...] = ()
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def owns(self, region_id: str) -> bool:
        """Check whether ``region_id`` is on this user's owner-list."""
        return region_id in self.region_ids


class Region(BaseModel, frozen=True):
    """A named polygon owned by exactly one user.

    ``polygon`` is always a closed ring of at least four
    (longitude, latitude) points.
    """

    id: str = Field(default_factory=new_id)
    name: str
    owner_id: str
    polygon: tuple[LngLat, ...]
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# Request structs
# =============================================================================


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class CreateUserRequest(_Request):
    """Payload for creating a user."""

    name: str
    email: str
    address: str | None = None
    coordinates: LngLat | None = None


class UpdateUserRequest(_Request):
    """Payload for updating a user. Omitted (or null) fields stay unchanged."""

    name: str | None = None
    email: str | None = None
    address: str | None = None
    coordinates: LngLat | None = None


class CreateRegionRequest(_Request):
    """Payload for creating a region."""

    name: str
    owner_id: str
    polygon: list[LngLat]


class UpdateRegionRequest(_Request):
    """Payload for updating a region. Ownership cannot be changed."""

    name: str | None = None
    polygon: list[LngLat] | None = None


class NearQuery(_Request):
    """Parameters of a proximity search."""

    longitude: float
    latitude: float
    max_distance_m: float
    owner_only: bool = False
    owner_id: str | None = None


# =============================================================================
# Results
# =============================================================================


class UserPage(BaseModel, frozen=True):
    """One page of a user listing."""

    users: list[User]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)

    @property
    def total_pages(self) -> int:
        """Number of pages at this page size."""
        return math.ceil(self.total / self.page_size)


class RegionMatch(BaseModel, frozen=True):
    """A region returned by a proximity search with its distance."""

    region: Region
    distance_m: float = Field(..., ge=0.0)
