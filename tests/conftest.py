"""Shared pytest fixtures and configuration."""

import asyncio
from collections.abc import Iterator, Sequence

import pytest

from regionmap.config import Settings
from regionmap.coordinator import ConsistencyCoordinator
from regionmap.errors import ResolutionError
from regionmap.geometry import LngLat
from regionmap.service import RegionMapService
from regionmap.store import RegionStore, UserStore
from regionmap.utils.logging import clear_correlation_context, configure_logging

UNIT_SQUARE: list[LngLat] = [(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)]


class StubResolver:
    """In-process GeocodingResolver with canned answers.

    Records every call so tests can assert whether resolution happened.
    """

    def __init__(
        self,
        coordinates: LngLat = (37.422, -122.084),
        address: str = "1600 Amphitheatre Parkway, Mountain View, CA",
        *,
        delay: float = 0.0,
        fail: bool = False,
    ) -> None:
        self.coordinates = coordinates
        self.address = address
        self.delay = delay
        self.fail = fail
        self.address_queries: list[str] = []
        self.coordinate_queries: list[Sequence[float]] = []

    async def resolve_coordinates(self, address: str) -> LngLat:
        self.address_queries.append(address)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ResolutionError("No geocoding result", query=address)
        return self.coordinates

    async def resolve_address(self, coordinates: LngLat) -> str:
        self.coordinate_queries.append(coordinates)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ResolutionError("No geocoding result")
        return self.address


@pytest.fixture(autouse=True)
def reset_logging_context() -> Iterator[None]:
    """Reset correlation context between tests."""
    clear_correlation_context()
    yield
    clear_correlation_context()


@pytest.fixture
def test_settings() -> Settings:
    """Create a Settings instance with test-safe defaults."""
    return Settings(
        _env_file=None,
        GOOGLE_API_KEY="test-google-key",
        LOG_LEVEL="DEBUG",
        LOG_FORMAT="console",
    )


@pytest.fixture
def configure_test_logging() -> Iterator[None]:
    """Configure logging for tests with console output."""
    configure_logging(level="DEBUG", log_format="console")
    yield


@pytest.fixture
def unit_square() -> list[LngLat]:
    """Closed unit square ring with its corner at the origin."""
    return list(UNIT_SQUARE)


@pytest.fixture
def resolver() -> StubResolver:
    """Resolver stub; tests tweak ``fail``/``delay``/answers as needed."""
    return StubResolver()


@pytest.fixture
def user_store(resolver: StubResolver) -> UserStore:
    return UserStore(resolver, resolve_timeout=1.0)


@pytest.fixture
def region_store() -> RegionStore:
    return RegionStore()


@pytest.fixture
def coordinator(
    user_store: UserStore, region_store: RegionStore
) -> ConsistencyCoordinator:
    return ConsistencyCoordinator(user_store, region_store)


@pytest.fixture
def service(
    user_store: UserStore,
    region_store: RegionStore,
    coordinator: ConsistencyCoordinator,
) -> RegionMapService:
    return RegionMapService(user_store, region_store, coordinator)
