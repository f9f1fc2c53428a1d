"""regionmap: users, owned regions and geospatial queries.

Public API:
    - Service: RegionMapService, build_service()
    - Records: User, Region, UserPage, RegionMatch
    - Requests: CreateUserRequest, UpdateUserRequest,
      CreateRegionRequest, UpdateRegionRequest
    - Errors: RegionMapError and its subclasses
"""

from regionmap.coordinator import ConsistencyCoordinator, CreationState
from regionmap.errors import (
    ConsistencyError,
    DuplicateEmailError,
    GeocoderUnavailableError,
    InvalidCoordinatesError,
    InvalidInputError,
    InvalidPolygonError,
    RegionMapError,
    RegionNotFoundError,
    ResolutionError,
    UserNotFoundError,
)
from regionmap.models import (
    CreateRegionRequest,
    CreateUserRequest,
    Region,
    RegionMatch,
    UpdateRegionRequest,
    UpdateUserRequest,
    User,
    UserPage,
)
from regionmap.service import RegionMapService, build_service

__version__ = "0.1.0"

__all__ = [
    "ConsistencyCoordinator",
    "ConsistencyError",
    "CreateRegionRequest",
    "CreateUserRequest",
    "CreationState",
    "DuplicateEmailError",
    "GeocoderUnavailableError",
    "InvalidCoordinatesError",
    "InvalidInputError",
    "InvalidPolygonError",
    "Region",
    "RegionMapError",
    "RegionMapService",
    "RegionMatch",
    "RegionNotFoundError",
    "ResolutionError",
    "UpdateRegionRequest",
    "UpdateUserRequest",
    "User",
    "UserNotFoundError",
    "UserPage",
    "build_service",
]
