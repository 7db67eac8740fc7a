"""Pydantic model for the location block of a crime report submission."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class LocationPayload(BaseModel):
    """Location fields handed to the report persistence API."""

    region: str = Field("", description="Region code")
    region_name: str = ""
    province: str = Field("", description="Province code")
    province_name: str = ""
    municipality_city: str = Field("", description="City or municipality code")
    municipality_city_name: str = ""
    barangay: str = Field("", description="Barangay code")
    barangay_name: str = ""
    house_building_number: str = ""
    street_name: str = ""
    purok_block_lot: str = ""
    zip_code: str = ""
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
