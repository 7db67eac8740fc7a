"""Location block of the crime report create and edit forms."""
from __future__ import annotations

import uuid
from typing import Mapping, Optional

import structlog

from geoform.geocode.debounce import DebounceScheduler
from geoform.geocode.provider import Geocoder
from geoform.geocode.resolver import GeocodeAttempt, GeocodeResolver
from geoform.geocode.store import CoordinateState, CoordinateStore
from geoform.location.composer import AddressParts, compose_address
from geoform.location.hierarchy import HierarchySelection, HierarchyState, LocationHierarchyResolver, LocationLevel
from geoform.location.reference import is_psgc_code
from geoform.observability.metrics import MetricsRegistry
from geoform.observability.tracing import bind_form_context, clear_context
from geoform.payload import LocationPayload
from geoform.settings import GeoformSettings

LOGGER = structlog.get_logger(__name__)

RESOLVE_KEY = "coordinates"

# Field names used by stored reports and the submission payload.
REPORT_FIELDS = {
    LocationLevel.REGION: "region",
    LocationLevel.PROVINCE: "province",
    LocationLevel.CITY_OR_MUNICIPALITY: "municipality_city",
    LocationLevel.BARANGAY: "barangay",
}
PART_FIELDS = {
    "building": "house_building_number",
    "street": "street_name",
    "block_lot": "purok_block_lot",
    "zip_code": "zip_code",
}


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_float(value: object) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class LocationForm:
    """Wires hierarchy, address parts, debounce and resolver for one form.

    Every change to the hierarchy or the address parts reschedules a single
    debounced resolution; the resolution reads the state as it is when the
    timer fires.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        *,
        settings: Optional[GeoformSettings] = None,
        metrics: Optional[MetricsRegistry] = None,
        form_id: Optional[str] = None,
    ) -> None:
        self.settings = settings or GeoformSettings()
        self.metrics = metrics or MetricsRegistry()
        self.form_id = form_id or uuid.uuid4().hex
        self.store = CoordinateStore()
        self._hierarchy = LocationHierarchyResolver()
        self._parts = AddressParts()
        self._resolver = GeocodeResolver(
            geocoder,
            self.store,
            timeout_seconds=self.settings.timeout_seconds,
            skip_policy=self.settings.skip_policy,
            metrics=self.metrics,
        )
        self._scheduler = DebounceScheduler(metrics=self.metrics)
        self._last_attempt: Optional[GeocodeAttempt] = None

    @classmethod
    def from_report(
        cls,
        location: Mapping[str, object],
        geocoder: Geocoder,
        *,
        settings: Optional[GeoformSettings] = None,
        metrics: Optional[MetricsRegistry] = None,
        form_id: Optional[str] = None,
    ) -> "LocationForm":
        """Build an edit form pre-populated from a stored report's location.

        Missing display names fall back to the stored code. The initial
        address counts as already considered so opening the form does not
        trigger a geocoder call.
        """
        form = cls(geocoder, settings=settings, metrics=metrics, form_id=form_id)
        for level, field in REPORT_FIELDS.items():
            code = _text(location.get(field))
            if not code:
                break
            name = _text(location.get(f"{field}_name"))
            if not name and is_psgc_code(code):
                LOGGER.warning("report_location_name_missing", form_id=form.form_id, level=field, code=code)
            form._hierarchy.select(level, code, name or code)
        form._parts = AddressParts(
            **{attr: _text(location.get(field)) for attr, field in PART_FIELDS.items()}
        )
        form.store.seed(
            latitude=_as_float(location.get("latitude")),
            longitude=_as_float(location.get("longitude")),
            address=form.composed_address,
        )
        return form

    @property
    def selection(self) -> HierarchySelection:
        return self._hierarchy.current_selection()

    @property
    def hierarchy_state(self) -> HierarchyState:
        return self._hierarchy.state

    @property
    def parts(self) -> AddressParts:
        return self._parts

    @property
    def composed_address(self) -> str:
        return compose_address(self.selection, self._parts)

    @property
    def coordinates(self) -> CoordinateState:
        return self.store.state

    @property
    def last_attempt(self) -> Optional[GeocodeAttempt]:
        """Most recent attempt that was not discarded as stale."""
        return self._last_attempt

    @property
    def ready_for_submit(self) -> bool:
        """True when no resolution is waiting on the debounce or the geocoder."""
        return not self._scheduler.pending(RESOLVE_KEY) and self._scheduler.in_flight == 0

    def select(self, level: LocationLevel, code: str, display_name: str) -> bool:
        changed = self._hierarchy.select(level, code, display_name)
        if changed:
            self.schedule_resolution()
        return changed

    def clear(self, level: LocationLevel) -> bool:
        changed = self._hierarchy.clear(level)
        if changed:
            self.schedule_resolution()
        return changed

    def update_parts(self, **changes: str) -> bool:
        updated = self._parts.updated(**changes)
        if updated == self._parts:
            return False
        self._parts = updated
        self.schedule_resolution()
        return True

    def schedule_resolution(self) -> None:
        self._scheduler.schedule(RESOLVE_KEY, self._run_resolution, self.settings.debounce_ms)

    async def _run_resolution(self) -> GeocodeAttempt:
        bind_form_context(form_id=self.form_id)
        try:
            attempt = await self._resolver.resolve(self.selection, self._parts)
        finally:
            clear_context()
        if not attempt.stale:
            self._last_attempt = attempt
        return attempt

    async def settle(self) -> None:
        """Wait for the pending debounce window and every in-flight resolution."""
        await self._scheduler.settle()

    def close(self) -> None:
        """Cancel any resolution still waiting on the debounce timer."""
        self._scheduler.cancel_all()

    def payload(self) -> LocationPayload:
        selection = self.selection
        latitude, longitude = self.store.payload_coordinates()
        fields = {}
        for level, field in REPORT_FIELDS.items():
            fields[field] = selection.code(level)
            fields[f"{field}_name"] = selection.name(level)
        for attr, field in PART_FIELDS.items():
            fields[field] = getattr(self._parts, attr)
        return LocationPayload(**fields, latitude=latitude, longitude=longitude)
