"""Contract for the administrative reference data behind the dropdowns."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

import structlog

from geoform.errors import ReferenceDataError
from geoform.location.hierarchy import LocationLevel
from geoform.observability.metrics import MetricsRegistry

LOGGER = structlog.get_logger(__name__)

_PSGC_PATTERN = re.compile(r"^\d{8,}$")


@dataclass(frozen=True, slots=True)
class LocationOption:
    """One selectable child returned by the reference source."""

    code: str
    name: str


class LocationReference(Protocol):
    async def children(self, level: LocationLevel, parent_code: Optional[str]) -> List[LocationOption]:
        """Return the options at ``level`` beneath ``parent_code``."""


@dataclass
class OptionsResult:
    """Options for a dropdown plus the inline error to show when loading failed."""

    level: LocationLevel
    options: List[LocationOption] = field(default_factory=list)
    error: Optional[ReferenceDataError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def is_psgc_code(value: object) -> bool:
    """Return True for strings that look like a PSGC code rather than a name."""
    return isinstance(value, str) and bool(_PSGC_PATTERN.match(value))


async def load_options(
    reference: LocationReference,
    level: LocationLevel,
    parent_code: Optional[str],
    *,
    metrics: Optional[MetricsRegistry] = None,
) -> OptionsResult:
    """Load and sort the options for a level without ever raising.

    Levels below the region need a parent code; without one the result is
    empty, matching a dropdown whose parent has not been chosen yet.
    """
    if level is not LocationLevel.REGION and not parent_code:
        return OptionsResult(level=level)
    try:
        options = await reference.children(level, parent_code)
    except Exception as exc:
        error = exc if isinstance(exc, ReferenceDataError) else ReferenceDataError(str(exc))
        if metrics is not None:
            metrics.incr("reference_errors")
        LOGGER.warning(
            "reference_lookup_failed",
            level=level.name.lower(),
            parent_code=parent_code,
            error=str(error),
        )
        return OptionsResult(level=level, error=error)
    return OptionsResult(level=level, options=sorted(options, key=lambda option: option.name))
