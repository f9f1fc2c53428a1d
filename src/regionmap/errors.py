"""Error kinds raised by the regionmap core.

Every failure a caller can observe is one of these exceptions. They carry
the identifiers involved so the surrounding transport layer can map them
to status codes without parsing messages.
"""

from __future__ import annotations

from typing import Any


class RegionMapError(Exception):
    """Base exception for all regionmap errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize error with optional keyword context.

        Args:
            message: Human-readable error description.
            **context: Identifiers or values relevant to the failure
                (e.g., user_id="..."). None values are omitted.
        """
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if not self.context:
            return self.message
        parts = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({parts})"


class InvalidInputError(RegionMapError):
    """Raised when required fields are missing, conflicting or malformed.

    This error is raised when:
    - Both or neither of address/coordinates are supplied for a new user
    - A name or email fails validation
    - Pagination parameters are out of range
    - A request payload carries unknown fields
    """

    pass


class DuplicateEmailError(InvalidInputError):
    """Raised when another user already owns the (case-folded) email."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("Email already registered", email=email)


class InvalidCoordinatesError(RegionMapError):
    """Raised when a longitude/latitude pair is out of range or malformed."""

    pass


class InvalidPolygonError(RegionMapError):
    """Raised when a ring has too few points after normalization."""

    pass


class UserNotFoundError(RegionMapError):
    """Raised when a user id does not resolve to a stored user."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__("User not found", user_id=user_id)


class RegionNotFoundError(RegionMapError):
    """Raised when a region id does not resolve to a stored region."""

    def __init__(self, region_id: str) -> None:
        self.region_id = region_id
        super().__init__("Region not found", region_id=region_id)


class ResolutionError(RegionMapError):
    """Raised when the geocoding dependency cannot translate a location.

    This error is raised when:
    - The upstream returns no result for an address or coordinate pair
    - The upstream call fails (transport error, non-OK status)
    - The call exceeds the caller-supplied timeout
    """

    def __init__(
        self,
        message: str,
        *,
        query: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.query = query
        self.cause = cause
        super().__init__(message, query=query)


class GeocoderUnavailableError(ResolutionError):
    """Raised when the geocoder circuit breaker is open."""

    def __init__(self, message: str, *, cooldown_remaining_seconds: float) -> None:
        self.cooldown_remaining_seconds = cooldown_remaining_seconds
        super().__init__(message)


class ConsistencyError(RegionMapError):
    """Raised after a partial multi-entity write was rolled back.

    Attributes:
        state: Name of the coordinator state in which the failure occurred.
        cause: The underlying exception.
        rolled_back: True if the compensating write succeeded.
    """

    def __init__(
        self,
        message: str,
        *,
        state: str,
        cause: Exception | None = None,
        rolled_back: bool = True,
        region_id: str | None = None,
        owner_id: str | None = None,
    ) -> None:
        self.state = state
        self.cause = cause
        self.rolled_back = rolled_back
        super().__init__(
            message,
            state=state,
            region_id=region_id,
            owner_id=owner_id,
            rolled_back=rolled_back,
        )
