"""Canonical address string composition."""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import List

from geoform.location.hierarchy import HierarchySelection, LocationLevel

SEPARATOR = ", "


@dataclass(frozen=True)
class AddressParts:
    """Free-text address fields typed into the form."""

    building: str = ""
    street: str = ""
    block_lot: str = ""
    zip_code: str = ""

    def has_specific_address(self) -> bool:
        """Return True when building, street or block/lot carries text."""
        return any(value.strip() for value in (self.building, self.street, self.block_lot))

    def updated(self, **changes: str) -> "AddressParts":
        """Return a copy with the supplied fields replaced."""
        known = {field.name for field in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise TypeError(f"unknown address fields: {', '.join(sorted(unknown))}")
        return replace(self, **{key: value or "" for key, value in changes.items()})


def compose_address(selection: HierarchySelection, parts: AddressParts) -> str:
    """Join the non-empty address components in their fixed order."""
    ordered = [
        parts.building,
        parts.street,
        parts.block_lot,
        selection.name(LocationLevel.BARANGAY),
        selection.name(LocationLevel.CITY_OR_MUNICIPALITY),
        selection.name(LocationLevel.PROVINCE),
        parts.zip_code,
        selection.name(LocationLevel.REGION),
    ]
    cleaned: List[str] = [value.strip() for value in ordered if value and value.strip()]
    return SEPARATOR.join(cleaned).strip()
