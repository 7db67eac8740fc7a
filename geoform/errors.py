"""Exception types shared across the location and geocoding packages."""
from __future__ import annotations


class GeoformError(Exception):
    """Base class for errors raised by this package."""


class HierarchyError(GeoformError):
    """A location level was selected while its parent level is empty."""


class ReferenceDataError(GeoformError):
    """Administrative reference lookup failed."""


class GeocodeError(GeoformError):
    """The geocoding provider could not be reached or answered garbage."""
