"""Cascading region > province > city/municipality > barangay selection state."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple

from geoform.errors import HierarchyError


class LocationLevel(IntEnum):
    """Administrative levels, ordered from the top of the hierarchy down."""

    REGION = 0
    PROVINCE = 1
    CITY_OR_MUNICIPALITY = 2
    BARANGAY = 3

    def below(self) -> Tuple["LocationLevel", ...]:
        """Return every level strictly beneath this one."""
        return tuple(level for level in LocationLevel if level > self)

    def parent(self) -> Optional["LocationLevel"]:
        if self is LocationLevel.REGION:
            return None
        return LocationLevel(self - 1)


class HierarchyState(str, Enum):
    EMPTY = "empty"
    REGION_SELECTED = "region_selected"
    PROVINCE_SELECTED = "province_selected"
    CITY_OR_MUNICIPALITY_SELECTED = "city_or_municipality_selected"
    BARANGAY_SELECTED = "barangay_selected"


_STATE_FOR_LEVEL = {
    LocationLevel.REGION: HierarchyState.REGION_SELECTED,
    LocationLevel.PROVINCE: HierarchyState.PROVINCE_SELECTED,
    LocationLevel.CITY_OR_MUNICIPALITY: HierarchyState.CITY_OR_MUNICIPALITY_SELECTED,
    LocationLevel.BARANGAY: HierarchyState.BARANGAY_SELECTED,
}

_FIELD_FOR_LEVEL = {
    LocationLevel.REGION: "region",
    LocationLevel.PROVINCE: "province",
    LocationLevel.CITY_OR_MUNICIPALITY: "city_or_municipality",
    LocationLevel.BARANGAY: "barangay",
}


@dataclass(frozen=True, slots=True)
class SelectedLocation:
    """The code and display name picked at one level."""

    code: str
    display_name: str


@dataclass(frozen=True, slots=True)
class LocationNode:
    """A selected location together with its position in the hierarchy."""

    level: LocationLevel
    code: str
    display_name: str
    parent_code: Optional[str] = None


@dataclass(frozen=True, slots=True)
class HierarchySelection:
    """Immutable snapshot of the selection at every level."""

    region: Optional[SelectedLocation] = None
    province: Optional[SelectedLocation] = None
    city_or_municipality: Optional[SelectedLocation] = None
    barangay: Optional[SelectedLocation] = None

    def get(self, level: LocationLevel) -> Optional[SelectedLocation]:
        return getattr(self, _FIELD_FOR_LEVEL[level])

    def code(self, level: LocationLevel) -> str:
        selected = self.get(level)
        return selected.code if selected else ""

    def name(self, level: LocationLevel) -> str:
        selected = self.get(level)
        return selected.display_name if selected else ""

    def has_any_code(self) -> bool:
        """Return True when at least one level carries a code."""
        return any(self.code(level) for level in LocationLevel)

    def deepest(self) -> Optional[LocationLevel]:
        deepest: Optional[LocationLevel] = None
        for level in LocationLevel:
            if self.get(level) is None:
                break
            deepest = level
        return deepest

    def nodes(self) -> List[LocationNode]:
        """Return the selected levels as nodes linked to their parent codes."""
        nodes: List[LocationNode] = []
        parent_code: Optional[str] = None
        for level in LocationLevel:
            selected = self.get(level)
            if selected is None:
                break
            nodes.append(LocationNode(level, selected.code, selected.display_name, parent_code))
            parent_code = selected.code
        return nodes


class LocationHierarchyResolver:
    """Owns the cascading selection and keeps lower levels consistent.

    Selecting a level clears every level beneath it, so a stale barangay can
    never survive a province change. Re-selecting the current code is a
    no-op and leaves the children alone.
    """

    def __init__(self) -> None:
        self._slots: Dict[LocationLevel, Optional[SelectedLocation]] = {level: None for level in LocationLevel}

    def select(self, level: LocationLevel, code: str, display_name: str) -> bool:
        """Select ``code`` at ``level``; return True when the selection changed.

        An empty code resets the level, mirroring a dropdown returning to its
        placeholder.
        """
        code = (code or "").strip()
        display_name = (display_name or "").strip()
        if not code:
            return self.clear(level)
        parent = level.parent()
        if parent is not None and self._slots[parent] is None:
            raise HierarchyError(f"cannot select {level.name.lower()} before {parent.name.lower()}")

        current = self._slots[level]
        if current is not None and current.code == code:
            if current.display_name == display_name or not display_name:
                return False
            self._slots[level] = SelectedLocation(code, display_name)
            return True

        self._slots[level] = SelectedLocation(code, display_name or code)
        self._clear_below(level)
        return True

    def clear(self, level: LocationLevel) -> bool:
        """Remove the selection at ``level`` and below."""
        changed = self._slots[level] is not None
        self._slots[level] = None
        return self._clear_below(level) or changed

    def _clear_below(self, level: LocationLevel) -> bool:
        changed = False
        for lower in level.below():
            if self._slots[lower] is not None:
                self._slots[lower] = None
                changed = True
        return changed

    def current_selection(self) -> HierarchySelection:
        return HierarchySelection(**{_FIELD_FOR_LEVEL[level]: value for level, value in self._slots.items()})

    @property
    def state(self) -> HierarchyState:
        deepest = self.current_selection().deepest()
        if deepest is None:
            return HierarchyState.EMPTY
        return _STATE_FOR_LEVEL[deepest]
