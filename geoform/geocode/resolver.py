"""Skip, cache-hit or call decisions against the geocoder."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from geoform.geocode.provider import Coordinate, Geocoder
from geoform.geocode.store import CoordinateStore
from geoform.location.composer import AddressParts, compose_address
from geoform.location.hierarchy import HierarchySelection
from geoform.observability.metrics import MetricsRegistry
from geoform.observability.tracing import log_geocode_result, log_stale_discard, span

LOGGER = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 8.0


class AttemptStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipPolicy(str, Enum):
    """What happens to stored coordinates when only the hierarchy is filled in."""

    RETAIN = "retain"
    CLEAR = "clear"


@dataclass
class GeocodeAttempt:
    """One decision cycle and, when the geocoder was called, its outcome."""

    composed_address: str
    sequence_number: int
    status: AttemptStatus = AttemptStatus.PENDING
    coordinate: Optional[Coordinate] = None
    reason: Optional[str] = None
    stale: bool = False


class GeocodeResolver:
    """Turns address changes into geocoder calls and coordinate updates.

    Every attempt that changes the outcome takes the next sequence number.
    A geocoder response only reaches the store when its attempt still holds
    the highest number issued, so a slow answer for an old address cannot
    overwrite a newer one. Provider failures and timeouts are folded into
    the ``UNAVAILABLE`` status; nothing raised by the geocoder escapes
    ``resolve``.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        store: CoordinateStore,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        skip_policy: SkipPolicy = SkipPolicy.RETAIN,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._geocoder = geocoder
        self._store = store
        self._timeout = timeout_seconds
        self._skip_policy = SkipPolicy(skip_policy)
        self._metrics = metrics or MetricsRegistry()
        self._sequence = 0
        self._in_flight = 0

    @property
    def latest_sequence(self) -> int:
        return self._sequence

    @property
    def in_flight(self) -> int:
        """Geocoder calls issued and not yet answered, stale ones included."""
        return self._in_flight

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    async def resolve(self, selection: HierarchySelection, parts: AddressParts) -> GeocodeAttempt:
        """Run one decision cycle for the current selection and address parts."""
        self._metrics.incr("decision_cycles")
        address = compose_address(selection, parts)

        if not address:
            attempt = self._skip(address, reason="empty")
            self._store.clear()
            return attempt

        if selection.has_any_code() and not parts.has_specific_address():
            attempt = self._skip(address, reason="hierarchy_only")
            if self._skip_policy is SkipPolicy.CLEAR:
                self._store.clear()
            else:
                self._store.settle_fetching()
            return attempt

        if address == self._store.last_considered_address:
            self._metrics.incr("cache_hits")
            LOGGER.debug("geocode_cache_hit", address=address)
            return GeocodeAttempt(
                composed_address=address,
                sequence_number=self._sequence,
                status=AttemptStatus.SKIPPED,
                reason="cache_hit",
            )

        attempt = GeocodeAttempt(composed_address=address, sequence_number=self._next_sequence())
        self._store.consider(address)
        self._store.mark_fetching()
        return await self._call(attempt)

    def _skip(self, address: str, *, reason: str) -> GeocodeAttempt:
        self._metrics.incr("skips")
        attempt = GeocodeAttempt(
            composed_address=address,
            sequence_number=self._next_sequence(),
            status=AttemptStatus.SKIPPED,
            reason=reason,
        )
        self._store.consider(address)
        LOGGER.info("geocode_skip", address=address, sequence=attempt.sequence_number, reason=reason)
        return attempt

    async def _call(self, attempt: GeocodeAttempt) -> GeocodeAttempt:
        self._metrics.incr("geocode_calls")
        LOGGER.info("geocode_call", address=attempt.composed_address, sequence=attempt.sequence_number)
        coordinate: Optional[Coordinate] = None
        self._in_flight += 1
        try:
            with span(name="geocode", address=attempt.composed_address):
                coordinate = await asyncio.wait_for(
                    self._geocoder.resolve(attempt.composed_address),
                    timeout=self._timeout,
                )
            if coordinate is None:
                attempt.reason = "no_match"
            elif not coordinate.in_bounds:
                LOGGER.warning(
                    "geocode_invalid_coordinate",
                    address=attempt.composed_address,
                    latitude=coordinate.latitude,
                    longitude=coordinate.longitude,
                )
                coordinate = None
                attempt.reason = "invalid_coordinate"
        except asyncio.TimeoutError:
            self._metrics.incr("geocode_timeouts")
            attempt.reason = "timeout"
        except Exception as exc:
            LOGGER.warning(
                "geocode_error",
                address=attempt.composed_address,
                sequence=attempt.sequence_number,
                error=str(exc),
                exc_info=True,
            )
            attempt.reason = "error"
        finally:
            self._in_flight -= 1

        attempt.coordinate = coordinate
        attempt.status = AttemptStatus.RESOLVED if coordinate is not None else AttemptStatus.FAILED

        if attempt.sequence_number < self._sequence:
            attempt.stale = True
            self._metrics.incr("stale_discards")
            log_stale_discard(
                address=attempt.composed_address,
                sequence=attempt.sequence_number,
                latest=self._sequence,
            )
            return attempt

        if coordinate is not None:
            self._metrics.incr("geocode_success")
            self._store.mark_available(coordinate, attempt.composed_address)
        else:
            self._metrics.incr("geocode_failures")
            self._store.mark_unavailable()
        log_geocode_result(
            address=attempt.composed_address,
            sequence=attempt.sequence_number,
            status=attempt.status.value,
            reason=attempt.reason,
        )
        return attempt
