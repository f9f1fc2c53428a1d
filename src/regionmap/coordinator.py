"""Cross-entity orchestration between users and regions.

ConsistencyCoordinator is the only component that changes a user's
owner-list. Every operation that touches both a region and its owner runs
under that owner's lock, so the lookup of the owner and the write to the
owner-list see one consistent version of the user. Operations for
different owners never share a lock.

Region creation moves through these states:

    VALIDATING -> USER_LOOKUP -> PERSISTING -> LINKING_OWNER -> COMMITTED

and may enter FAILED from any of them. A failure after PERSISTING removes
the region again before the error is raised, so no region is ever left
without a matching owner-list entry.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from regionmap.errors import (
    ConsistencyError,
    InvalidInputError,
    RegionMapError,
    RegionNotFoundError,
    UserNotFoundError,
)
from regionmap.models import Region, User, new_id
from regionmap.store.regions import RegionStore
from regionmap.store.users import UserStore
from regionmap.utils.locks import KeyedLock
from regionmap.utils.logging import get_logger

logger = get_logger(__name__)


class CreationState(Enum):
    """States of a region-creation operation."""

    VALIDATING = "validating"
    USER_LOOKUP = "user_lookup"
    PERSISTING = "persisting"
    LINKING_OWNER = "linking_owner"
    COMMITTED = "committed"
    FAILED = "failed"


class ConsistencyCoordinator:
    """Keeps regions and their owners' region lists in step.

    Usage:
        coordinator = ConsistencyCoordinator(users, regions)
        region = await coordinator.create_region("Centro", user.id, ring)
        await coordinator.delete_region(region.id)
    """

    def __init__(
        self,
        users: UserStore,
        regions: RegionStore,
        owner_locks: KeyedLock | None = None,
    ) -> None:
        self.users = users
        self.regions = regions
        self.owner_locks = owner_locks if owner_locks is not None else KeyedLock()

    @staticmethod
    def _enter(state: CreationState, **context: object) -> CreationState:
        logger.debug("Region creation state", state=state.value, **context)
        return state

    async def create_region(
        self,
        name: str,
        owner_id: str,
        raw_polygon: Sequence[Sequence[float]],
    ) -> Region:
        """Create a region and add it to its owner's region list atomically.

        Raises:
            InvalidInputError, InvalidCoordinatesError, InvalidPolygonError:
                Validation failed; nothing was written.
            UserNotFoundError: The owner does not exist; nothing was written.
            ConsistencyError: Persisting or linking failed; the region was removed.
        """
        state = self._enter(CreationState.VALIDATING, owner_id=owner_id)
        try:
            self.regions.prepare_polygon(raw_polygon)
            if not name or not name.strip():
                raise InvalidInputError("Region name must not be empty")
        except RegionMapError:
            self._enter(CreationState.FAILED, failed_in=state.value)
            raise

        async with self.owner_locks.hold(owner_id):
            state = self._enter(CreationState.USER_LOOKUP, owner_id=owner_id)
            try:
                await self.users.get(owner_id)
            except Exception:
                self._enter(CreationState.FAILED, failed_in=state.value)
                raise

            region_id = new_id()
            state = self._enter(
                CreationState.PERSISTING, owner_id=owner_id, region_id=region_id
            )
            try:
                region = await self.regions.create(
                    name, owner_id, raw_polygon, region_id=region_id
                )
            except RegionMapError:
                self._enter(CreationState.FAILED, failed_in=state.value)
                raise
            except Exception as e:
                self._enter(CreationState.FAILED, failed_in=state.value)
                rolled_back = await self._rollback_create(region_id, owner_id)
                raise ConsistencyError(
                    f"Could not persist region: {e}",
                    state=state.value,
                    cause=e,
                    rolled_back=rolled_back,
                    region_id=region_id,
                    owner_id=owner_id,
                ) from e

            state = self._enter(
                CreationState.LINKING_OWNER, owner_id=owner_id, region_id=region.id
            )
            try:
                await self.users.link_region(owner_id, region.id)
            except Exception as e:
                self._enter(CreationState.FAILED, failed_in=state.value)
                rolled_back = await self._rollback_create(region.id, owner_id)
                raise ConsistencyError(
                    f"Could not link region to owner: {e}",
                    state=state.value,
                    cause=e,
                    rolled_back=rolled_back,
                    region_id=region.id,
                    owner_id=owner_id,
                ) from e

            self._enter(CreationState.COMMITTED, owner_id=owner_id, region_id=region.id)
        return region

    async def _rollback_create(self, region_id: str, owner_id: str) -> bool:
        """Remove whatever a failed creation left behind.

        Returns:
            True if no trace of the region remains.
        """
        try:
            await self.regions.delete(region_id)
        except RegionNotFoundError:
            # Repository never kept it; the index must not either
            self.regions.index.remove(region_id)
            return True
        except Exception:
            logger.exception("Rollback of region creation failed", region_id=region_id)
            return False
        logger.warning(
            "Region creation rolled back", region_id=region_id, owner_id=owner_id
        )
        return True

    async def update_region(
        self,
        region_id: str,
        name: str | None = None,
        raw_polygon: Sequence[Sequence[float]] | None = None,
    ) -> Region:
        """Update a region's name and/or polygon.

        Ownership cannot change, so the owner-list is untouched.
        """
        return await self.regions.update(region_id, name=name, raw_polygon=raw_polygon)

    async def delete_region(self, region_id: str) -> Region:
        """Delete a region and remove it from its owner's region list.

        Raises:
            RegionNotFoundError: The region does not exist.
            ConsistencyError: Unlinking the owner failed; the region was restored.
        """
        region = await self.regions.get(region_id)
        owner_id = region.owner_id

        async with self.owner_locks.hold(owner_id):
            removed = await self.regions.delete(region_id)
            try:
                await self.users.unlink_region(owner_id, region_id)
            except UserNotFoundError:
                logger.warning(
                    "Deleted region had no owner record",
                    region_id=region_id,
                    owner_id=owner_id,
                )
            except Exception as e:
                rolled_back = True
                try:
                    await self.regions.restore(removed)
                except Exception:
                    logger.exception("Restoring region failed", region_id=region_id)
                    rolled_back = False
                raise ConsistencyError(
                    f"Could not unlink region from owner: {e}",
                    state="unlinking_owner",
                    cause=e,
                    rolled_back=rolled_back,
                    region_id=region_id,
                    owner_id=owner_id,
                ) from e

        return removed

    async def delete_user(self, user_id: str) -> User:
        """Delete a user together with every region it owns.

        Raises:
            UserNotFoundError: The user does not exist.
            ConsistencyError: Removing a region or the user record failed;
                the regions already removed were put back where possible.
        """
        async with self.owner_locks.hold(user_id):
            user = await self.users.get(user_id)

            owned_ids = set(user.region_ids)
            owned_ids.update(r.id for r in await self.regions.list_by_owner(user_id))

            removed: list[Region] = []
            state = "deleting_regions"
            try:
                for region_id in sorted(owned_ids):
                    try:
                        removed.append(await self.regions.delete(region_id))
                    except RegionNotFoundError:
                        continue
                state = "deleting_owner"
                deleted = await self.users.delete(user_id)
            except Exception as e:
                rolled_back = await self._restore_regions(removed)
                raise ConsistencyError(
                    f"Could not delete user and its regions: {e}",
                    state=state,
                    cause=e,
                    rolled_back=rolled_back,
                    owner_id=user_id,
                ) from e

        logger.info("User deleted with regions", user_id=user_id, regions=len(removed))
        return deleted

    async def _restore_regions(self, regions: Sequence[Region]) -> bool:
        """Put back every region in ``regions``; False if any could not be."""
        restored_all = True
        for region in regions:
            try:
                await self.regions.restore(region)
            except Exception:
                logger.exception("Restoring region failed", region_id=region.id)
                restored_all = False
        return restored_all
