"""User lifecycle and address/coordinate resolution.

A user's location is supplied as exactly one of an address or a coordinate
pair; UserStore derives the other half through the geocoding resolver
before anything is stored. The owner-list (``region_ids``) is changed only
through `link_region` / `unlink_region`, which the coordinator calls.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Sequence
from typing import TypeVar

from regionmap.errors import (
    DuplicateEmailError,
    InvalidInputError,
    ResolutionError,
    UserNotFoundError,
)
from regionmap.geocoding.protocol import GeocodingResolver
from regionmap.geometry import LngLat, to_lnglat
from regionmap.models import User, UserPage, new_id, utcnow
from regionmap.store.repository import InMemoryRepository, Repository
from regionmap.utils.locks import KeyedLock
from regionmap.utils.logging import get_logger

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_ADDRESS_LENGTH = 5

T = TypeVar("T")


def _clean_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise InvalidInputError("Name must not be empty")
    return name.strip()


def _clean_email(email: str | None) -> str:
    if email is None:
        raise InvalidInputError("Email is required")
    normalized = email.strip().lower()
    if not EMAIL_RE.match(normalized):
        raise InvalidInputError("Invalid email address", email=email)
    return normalized


def _clean_address(address: str) -> str:
    stripped = address.strip()
    if len(stripped) < MIN_ADDRESS_LENGTH:
        raise InvalidInputError(
            f"Address must be at least {MIN_ADDRESS_LENGTH} characters",
            address=address,
        )
    return stripped


def _require_exactly_one(address: str | None, coordinates: object | None) -> None:
    if address is not None and coordinates is not None:
        raise InvalidInputError(
            "Provide either an address or coordinates, not both"
        )
    if address is None and coordinates is None:
        raise InvalidInputError("Provide either an address or coordinates")


class UserStore:
    """Owns user records and keeps address and coordinates consistent."""

    def __init__(
        self,
        resolver: GeocodingResolver,
        repository: Repository[User] | None = None,
        *,
        resolve_timeout: float | None = 10.0,
    ) -> None:
        """Create a store.

        Args:
            resolver: Geocoding collaborator.
            repository: Record storage; in-memory if omitted.
            resolve_timeout: Seconds allowed per resolver call; None disables.
        """
        self.resolver = resolver
        self.repository: Repository[User] = (
            repository if repository is not None else InMemoryRepository()
        )
        self.resolve_timeout = resolve_timeout
        self._record_locks = KeyedLock()
        self._email_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def _bounded(self, call: Awaitable[T], *, query: str) -> T:
        """Await a resolver call under the configured timeout."""
        try:
            return await asyncio.wait_for(call, timeout=self.resolve_timeout)
        except TimeoutError as e:
            raise ResolutionError(
                f"Geocoding timed out after {self.resolve_timeout}s",
                query=query,
                cause=e,
            ) from e

    async def resolve_coordinates(self, address: str) -> LngLat:
        """Derive coordinates for an address.

        Raises:
            ResolutionError: On empty result, upstream failure or timeout.
        """
        result = await self._bounded(
            self.resolver.resolve_coordinates(address), query=address
        )
        if not result or len(result) != 2:
            raise ResolutionError("No coordinates found for address", query=address)
        lng, lat = result
        logger.info("Coordinates resolved", address=address, coordinates=[lng, lat])
        return (float(lng), float(lat))

    async def resolve_address(self, coordinates: LngLat) -> str:
        """Derive an address for a coordinate pair.

        Raises:
            ResolutionError: On empty result, upstream failure or timeout.
        """
        query = f"{coordinates[0]},{coordinates[1]}"
        result = await self._bounded(
            self.resolver.resolve_address(coordinates), query=query
        )
        if not result or not str(result).strip():
            raise ResolutionError("No address found for coordinates", query=query)
        logger.info("Address resolved", coordinates=list(coordinates), address=result)
        return str(result)

    async def _resolve_location(
        self,
        address: str | None,
        coordinates: Sequence[float] | None,
    ) -> tuple[str, LngLat]:
        """Validate the supplied half and derive the other."""
        if address is not None:
            clean = _clean_address(address)
            return clean, await self.resolve_coordinates(clean)
        assert coordinates is not None
        lnglat = to_lnglat(coordinates)
        return await self.resolve_address(lnglat), lnglat

    # ------------------------------------------------------------------
    # Email uniqueness
    # ------------------------------------------------------------------

    async def _email_taken(self, email: str, *, exclude_id: str | None = None) -> bool:
        return any(
            u.email == email and u.id != exclude_id
            for u in await self.repository.values()
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create(
        self,
        name: str,
        email: str,
        address: str | None = None,
        coordinates: Sequence[float] | None = None,
    ) -> User:
        """Create a user, deriving whichever location half was not supplied.

        Raises:
            InvalidInputError: Both or neither location field supplied, bad
                name/email/address.
            InvalidCoordinatesError: Coordinates out of range.
            DuplicateEmailError: Email already registered.
            ResolutionError: The resolver could not derive the missing half.
        """
        _require_exactly_one(address, coordinates)
        clean_name = _clean_name(name)
        clean_email = _clean_email(email)
        if await self._email_taken(clean_email):
            raise DuplicateEmailError(clean_email)

        resolved_address, resolved_coordinates = await self._resolve_location(
            address, coordinates
        )

        user = User(
            id=new_id(),
            name=clean_name,
            email=clean_email,
            address=resolved_address,
            coordinates=resolved_coordinates,
        )
        async with self._email_lock:
            # Re-check: another create may have claimed the email while resolving.
            if await self._email_taken(clean_email):
                raise DuplicateEmailError(clean_email)
            await self.repository.put(user.id, user)

        logger.info("User created", user_id=user.id)
        return user

    async def update(
        self,
        user_id: str,
        *,
        name: str | None = None,
        email: str | None = None,
        address: str | None = None,
        coordinates: Sequence[float] | None = None,
    ) -> User:
        """Update supplied fields of a user.

        Omitted location fields stay unchanged. Supplying one location field
        re-derives the other; supplying both is rejected.

        Raises:
            UserNotFoundError: If the user does not exist.
            InvalidInputError: Both location fields supplied, or bad values.
            DuplicateEmailError: Email belongs to another user.
            ResolutionError: The resolver could not derive the other half.
        """
        if address is not None and coordinates is not None:
            raise InvalidInputError(
                "Provide either an address or coordinates, not both"
            )

        changes: dict[str, object] = {}
        if name is not None:
            changes["name"] = _clean_name(name)
        if email is not None:
            changes["email"] = _clean_email(email)

        current = await self.get(user_id)
        if "email" in changes and await self._email_taken(
            str(changes["email"]), exclude_id=user_id
        ):
            raise DuplicateEmailError(str(changes["email"]))

        if address is not None or coordinates is not None:
            new_address, new_coordinates = await self._resolve_location(
                address, coordinates
            )
            if (new_address, new_coordinates) != (current.address, current.coordinates):
                changes["address"] = new_address
                changes["coordinates"] = new_coordinates

        async with self._email_lock, self._record_locks.hold(user_id):
            latest = await self.repository.get(user_id)
            if latest is None:
                raise UserNotFoundError(user_id)
            if "email" in changes and await self._email_taken(
                str(changes["email"]), exclude_id=user_id
            ):
                raise DuplicateEmailError(str(changes["email"]))
            if not changes:
                return latest
            # Apply to the latest version so concurrent owner-list changes survive.
            updated = latest.model_copy(update={**changes, "updated_at": utcnow()})
            await self.repository.put(user_id, updated)

        logger.info("User updated", user_id=user_id, fields=sorted(changes))
        return updated

    async def delete(self, user_id: str) -> User:
        """Delete a user record.

        Owned regions are handled by the coordinator before this is called.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        async with self._record_locks.hold(user_id):
            removed = await self.repository.delete(user_id)
        if removed is None:
            raise UserNotFoundError(user_id)
        logger.info("User deleted", user_id=user_id)
        return removed

    async def get(self, user_id: str) -> User:
        """Fetch a user.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        user = await self.repository.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def list(
        self,
        page: int = 1,
        page_size: int = 10,
        name_filter: str | None = None,
        email_filter: str | None = None,
    ) -> UserPage:
        """List users, oldest first, with optional case-insensitive filters.

        Args:
            page: 1-based page number.
            page_size: Users per page.
            name_filter: Substring that names must contain.
            email_filter: Substring that emails must contain.

        Raises:
            InvalidInputError: If ``page`` or ``page_size`` is below 1.
        """
        if page < 1 or page_size < 1:
            raise InvalidInputError(
                "page and page_size must be positive", page=page, page_size=page_size
            )

        users = await self.repository.values()
        if name_filter:
            needle = name_filter.casefold()
            users = [u for u in users if needle in u.name.casefold()]
        if email_filter:
            needle = email_filter.casefold()
            users = [u for u in users if needle in u.email.casefold()]
        users.sort(key=lambda u: (u.created_at, u.id))

        skip = (page - 1) * page_size
        return UserPage(
            users=users[skip : skip + page_size],
            total=len(users),
            page=page,
            page_size=page_size,
        )

    # ------------------------------------------------------------------
    # Owner-list
    # ------------------------------------------------------------------

    async def link_region(self, user_id: str, region_id: str) -> User:
        """Add ``region_id`` to the user's owner-list (no duplicates).

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        async with self._record_locks.hold(user_id):
            user = await self.get(user_id)
            if user.owns(region_id):
                return user
            updated = user.model_copy(
                update={"region_ids": (*user.region_ids, region_id), "updated_at": utcnow()}
            )
            await self.repository.put(user_id, updated)
        logger.debug("Region linked to owner", user_id=user_id, region_id=region_id)
        return updated

    async def unlink_region(self, user_id: str, region_id: str) -> User:
        """Remove ``region_id`` from the user's owner-list if present.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        async with self._record_locks.hold(user_id):
            user = await self.get(user_id)
            if not user.owns(region_id):
                return user
            updated = user.model_copy(
                update={
                    "region_ids": tuple(r for r in user.region_ids if r != region_id),
                    "updated_at": utcnow(),
                }
            )
            await self.repository.put(user_id, updated)
        logger.debug("Region unlinked from owner", user_id=user_id, region_id=region_id)
        return updated
