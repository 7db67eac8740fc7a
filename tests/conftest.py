import asyncio
from typing import Dict, List, Optional

import pytest

from geoform.geocode.provider import Coordinate
from geoform.location.hierarchy import LocationLevel

FULL_HIERARCHY = [
    (LocationLevel.REGION, "R1", "Region I"),
    (LocationLevel.PROVINCE, "P1", "Province X"),
    (LocationLevel.CITY_OR_MUNICIPALITY, "C1", "City Y"),
    (LocationLevel.BARANGAY, "B1", "Barangay Z"),
]


class FakeGeocoder:
    """Scripted geocoder; an address with a gate waits until the gate is set."""

    def __init__(self) -> None:
        self.answers: Dict[str, object] = {}
        self.default: Optional[Coordinate] = None
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []

    async def resolve(self, address: str) -> Optional[Coordinate]:
        self.calls.append(address)
        gate = self.gates.get(address)
        if gate is not None:
            await gate.wait()
        answer = self.answers.get(address, self.default)
        if isinstance(answer, BaseException):
            raise answer
        return answer


@pytest.fixture()
def geocoder():
    return FakeGeocoder()


@pytest.fixture()
def full_hierarchy():
    return list(FULL_HIERARCHY)
