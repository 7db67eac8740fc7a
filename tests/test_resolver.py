import asyncio

from geoform.errors import GeocodeError
from geoform.geocode.provider import Coordinate
from geoform.geocode.resolver import AttemptStatus, GeocodeResolver, SkipPolicy
from geoform.geocode.store import CoordinateState, CoordinateStatus, CoordinateStore
from geoform.location.composer import AddressParts
from geoform.location.hierarchy import LocationHierarchyResolver
from geoform.observability.metrics import MetricsRegistry

ADDRESS = "123, Main St, Barangay Z, City Y, Province X, Region I"
OTHER_ADDRESS = "9, Rizal Ave, Barangay Z, City Y, Province X, Region I"


def _selection(full_hierarchy):
    resolver = LocationHierarchyResolver()
    for level, code, name in full_hierarchy:
        resolver.select(level, code, name)
    return resolver.current_selection()


def _resolver(geocoder, **kwargs):
    store = CoordinateStore()
    metrics = MetricsRegistry()
    return GeocodeResolver(geocoder, store, metrics=metrics, **kwargs), store, metrics


def test_street_and_building_trigger_one_call(geocoder, full_hierarchy):
    geocoder.answers[ADDRESS] = Coordinate(14.5, 121.0)
    resolver, store, metrics = _resolver(geocoder)

    attempt = asyncio.run(resolver.resolve(_selection(full_hierarchy), AddressParts(building="123", street="Main St")))

    assert geocoder.calls == [ADDRESS]
    assert attempt.status is AttemptStatus.RESOLVED
    assert store.state == CoordinateState(14.5, 121.0, CoordinateStatus.AVAILABLE)
    assert store.last_resolved_address == ADDRESS
    assert metrics.get("geocode_success") == 1


def test_hierarchy_only_is_skipped_and_state_retained(geocoder, full_hierarchy):
    resolver, store, metrics = _resolver(geocoder)
    store.seed(latitude=10.0, longitude=120.0, address="old address")
    before = store.state

    attempt = asyncio.run(resolver.resolve(_selection(full_hierarchy), AddressParts()))

    assert attempt.status is AttemptStatus.SKIPPED
    assert attempt.reason == "hierarchy_only"
    assert geocoder.calls == []
    assert store.state == before
    assert metrics.get("skips") == 1


def test_hierarchy_only_with_clear_policy_drops_coordinates(geocoder, full_hierarchy):
    resolver, store, _ = _resolver(geocoder, skip_policy=SkipPolicy.CLEAR)
    store.seed(latitude=10.0, longitude=120.0, address="old address")

    asyncio.run(resolver.resolve(_selection(full_hierarchy), AddressParts(zip_code="2900")))

    assert geocoder.calls == []
    assert store.state == CoordinateState()


def test_unchanged_address_is_a_cache_hit(geocoder, full_hierarchy):
    geocoder.answers[ADDRESS] = Coordinate(14.5, 121.0)
    resolver, store, metrics = _resolver(geocoder)
    selection = _selection(full_hierarchy)
    parts = AddressParts(building="123", street="Main St")

    async def _run():
        first = await resolver.resolve(selection, parts)
        second = await resolver.resolve(selection, parts)
        return first, second

    first, second = asyncio.run(_run())

    assert geocoder.calls == [ADDRESS]
    assert second.status is AttemptStatus.SKIPPED
    assert second.reason == "cache_hit"
    assert second.sequence_number == first.sequence_number
    assert metrics.get("cache_hits") == 1


def test_failed_address_is_not_retried(geocoder, full_hierarchy):
    resolver, store, _ = _resolver(geocoder)
    selection = _selection(full_hierarchy)
    parts = AddressParts(building="123", street="Main St")

    async def _run():
        await resolver.resolve(selection, parts)
        return await resolver.resolve(selection, parts)

    second = asyncio.run(_run())

    assert geocoder.calls == [ADDRESS]
    assert second.reason == "cache_hit"
    assert store.state.status is CoordinateStatus.UNAVAILABLE


def test_stale_response_does_not_overwrite_newer_result(geocoder, full_hierarchy):
    geocoder.answers[ADDRESS] = Coordinate(1.0, 1.0)
    geocoder.answers[OTHER_ADDRESS] = Coordinate(14.5, 121.0)
    resolver, store, metrics = _resolver(geocoder)
    selection = _selection(full_hierarchy)

    async def _run():
        gate = asyncio.Event()
        geocoder.gates[ADDRESS] = gate
        first = asyncio.create_task(resolver.resolve(selection, AddressParts(building="123", street="Main St")))
        await asyncio.sleep(0)
        assert resolver.latest_sequence == 1
        second = await resolver.resolve(selection, AddressParts(building="9", street="Rizal Ave"))
        gate.set()
        return await first, second

    first, second = asyncio.run(_run())

    assert second.status is AttemptStatus.RESOLVED
    assert first.stale is True
    assert first.sequence_number < second.sequence_number
    assert store.state == CoordinateState(14.5, 121.0, CoordinateStatus.AVAILABLE)
    assert store.last_resolved_address == OTHER_ADDRESS
    assert metrics.get("stale_discards") == 1


def test_skip_supersedes_call_in_flight(geocoder, full_hierarchy):
    geocoder.answers[ADDRESS] = Coordinate(1.0, 1.0)
    resolver, store, _ = _resolver(geocoder)
    selection = _selection(full_hierarchy)

    async def _run():
        gate = asyncio.Event()
        geocoder.gates[ADDRESS] = gate
        pending = asyncio.create_task(resolver.resolve(selection, AddressParts(building="123", street="Main St")))
        await asyncio.sleep(0)
        assert store.state.status is CoordinateStatus.FETCHING
        await resolver.resolve(selection, AddressParts())
        gate.set()
        return await pending

    stale = asyncio.run(_run())

    assert stale.stale is True
    assert store.state == CoordinateState()


def test_failure_keeps_previous_coordinates(geocoder, full_hierarchy):
    geocoder.answers[ADDRESS] = GeocodeError("boom")
    resolver, store, metrics = _resolver(geocoder)
    store.seed(latitude=10.0, longitude=120.0, address="old address")

    attempt = asyncio.run(resolver.resolve(_selection(full_hierarchy), AddressParts(building="123", street="Main St")))

    assert attempt.status is AttemptStatus.FAILED
    assert attempt.reason == "error"
    assert store.state == CoordinateState(10.0, 120.0, CoordinateStatus.UNAVAILABLE)
    assert store.payload_coordinates() == (None, None)
    assert metrics.get("geocode_failures") == 1


def test_no_match_without_previous_coordinates(geocoder, full_hierarchy):
    resolver, store, _ = _resolver(geocoder)

    attempt = asyncio.run(resolver.resolve(_selection(full_hierarchy), AddressParts(street="Nowhere Rd")))

    assert attempt.reason == "no_match"
    assert store.state == CoordinateState(None, None, CoordinateStatus.UNAVAILABLE)


def test_out_of_range_answer_is_a_failure(geocoder, full_hierarchy):
    geocoder.answers[ADDRESS] = Coordinate(95.0, 121.0)
    resolver, store, metrics = _resolver(geocoder)
    store.seed(latitude=10.0, longitude=120.0, address="old address")

    attempt = asyncio.run(resolver.resolve(_selection(full_hierarchy), AddressParts(building="123", street="Main St")))

    assert attempt.status is AttemptStatus.FAILED
    assert attempt.reason == "invalid_coordinate"
    assert attempt.coordinate is None
    assert store.state == CoordinateState(10.0, 120.0, CoordinateStatus.UNAVAILABLE)
    assert store.last_resolved_address == "old address"
    assert metrics.get("geocode_failures") == 1


def test_non_finite_answer_is_a_failure(geocoder, full_hierarchy):
    geocoder.default = Coordinate(float("nan"), 121.0)
    resolver, store, _ = _resolver(geocoder)

    attempt = asyncio.run(resolver.resolve(_selection(full_hierarchy), AddressParts(street="Main St")))

    assert attempt.reason == "invalid_coordinate"
    assert store.payload_coordinates() == (None, None)


def test_slow_geocoder_times_out(full_hierarchy):
    class SlowGeocoder:
        async def resolve(self, address):
            await asyncio.sleep(1)
            return Coordinate(0.0, 0.0)

    resolver, store, metrics = _resolver(SlowGeocoder(), timeout_seconds=0.05)

    attempt = asyncio.run(resolver.resolve(_selection(full_hierarchy), AddressParts(street="Main St")))

    assert attempt.status is AttemptStatus.FAILED
    assert attempt.reason == "timeout"
    assert store.state.status is CoordinateStatus.UNAVAILABLE
    assert metrics.get("geocode_timeouts") == 1
    assert resolver.in_flight == 0


def test_empty_address_clears_coordinates(geocoder):
    resolver, store, _ = _resolver(geocoder)
    store.seed(latitude=10.0, longitude=120.0, address="old address")

    attempt = asyncio.run(resolver.resolve(LocationHierarchyResolver().current_selection(), AddressParts()))

    assert attempt.reason == "empty"
    assert geocoder.calls == []
    assert store.state == CoordinateState()


def test_sequence_numbers_strictly_increase(geocoder, full_hierarchy):
    resolver, _, _ = _resolver(geocoder)
    selection = _selection(full_hierarchy)

    async def _run():
        numbers = []
        for street in ("A St", "B St", "C St"):
            attempt = await resolver.resolve(selection, AddressParts(street=street))
            numbers.append(attempt.sequence_number)
        return numbers

    assert asyncio.run(_run()) == [1, 2, 3]
