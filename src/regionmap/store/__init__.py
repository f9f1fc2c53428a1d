"""Record stores for regionmap.

Public API:
    - UserStore: user lifecycle and address/coordinate resolution
    - RegionStore: region lifecycle and spatial queries
    - Repository, InMemoryRepository, JsonFileRepository: persistence
"""

from regionmap.store.regions import RegionStore
from regionmap.store.repository import (
    InMemoryRepository,
    JsonFileRepository,
    Repository,
)
from regionmap.store.users import UserStore

__all__ = [
    "InMemoryRepository",
    "JsonFileRepository",
    "RegionStore",
    "Repository",
    "UserStore",
]
