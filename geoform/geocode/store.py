"""Latest accepted coordinate state for one form."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from geoform.geocode.provider import Coordinate, is_valid_coordinate


class CoordinateStatus(str, Enum):
    FETCHING = "fetching"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class CoordinateState:
    """Coordinates shown on the form and sent with the report."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: CoordinateStatus = CoordinateStatus.UNAVAILABLE

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class CoordinateStore:
    """Holds the coordinate state plus the addresses used for deduplication.

    The state is replaced as a whole on every write. Readers only get the
    frozen ``CoordinateState``; the mutators are meant for the resolver and
    for pre-populating an edit form.
    """

    def __init__(self) -> None:
        self._state = CoordinateState()
        self._last_considered: Optional[str] = None
        self._last_resolved: Optional[str] = None
        self._status_before_fetch = CoordinateStatus.UNAVAILABLE

    @property
    def state(self) -> CoordinateState:
        return self._state

    @property
    def last_considered_address(self) -> Optional[str]:
        """Composed address of the most recent decision, whatever its outcome."""
        return self._last_considered

    @property
    def last_resolved_address(self) -> Optional[str]:
        return self._last_resolved

    def seed(self, *, latitude: Optional[float], longitude: Optional[float], address: str) -> None:
        """Load the state stored with an existing report.

        A pair outside the valid ranges seeds ``UNAVAILABLE`` so it is never
        submitted back.
        """
        if is_valid_coordinate(latitude, longitude):
            self._state = CoordinateState(latitude, longitude, CoordinateStatus.AVAILABLE)
            self._last_resolved = address
        else:
            self._state = CoordinateState()
        self._last_considered = address

    def consider(self, address: str) -> None:
        self._last_considered = address

    def mark_fetching(self) -> None:
        current = self._state
        if current.status is not CoordinateStatus.FETCHING:
            self._status_before_fetch = current.status
        self._state = CoordinateState(current.latitude, current.longitude, CoordinateStatus.FETCHING)

    def mark_available(self, coordinate: Coordinate, address: str) -> None:
        self._state = CoordinateState(coordinate.latitude, coordinate.longitude, CoordinateStatus.AVAILABLE)
        self._last_resolved = address

    def mark_unavailable(self) -> None:
        """Flag coordinates as unavailable, keeping whatever was stored before."""
        current = self._state
        self._state = CoordinateState(current.latitude, current.longitude, CoordinateStatus.UNAVAILABLE)

    def clear(self) -> None:
        self._state = CoordinateState()

    def settle_fetching(self) -> None:
        """Leave the fetching status when the call behind it was superseded."""
        current = self._state
        if current.status is not CoordinateStatus.FETCHING:
            return
        self._state = CoordinateState(current.latitude, current.longitude, self._status_before_fetch)

    def payload_coordinates(self) -> Tuple[Optional[float], Optional[float]]:
        """Return the pair to submit, empty when coordinates are unavailable."""
        if self._state.status is CoordinateStatus.UNAVAILABLE:
            return None, None
        return self._state.latitude, self._state.longitude
