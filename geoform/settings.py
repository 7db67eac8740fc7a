"""Settings loading for the geocoding engine."""
from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from geoform.geocode.provider import GOOGLE_GEOCODE_URL
from geoform.geocode.resolver import DEFAULT_TIMEOUT_SECONDS, SkipPolicy

DEFAULT_SETTINGS_PATH = Path("config/settings.toml")
API_KEY_ENV = "GOOGLE_MAPS_API_KEY"


@dataclass
class GeoformSettings:
    debounce_ms: int = 500
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    skip_policy: SkipPolicy = SkipPolicy.RETAIN
    geocoder_url: str = GOOGLE_GEOCODE_URL
    user_agent: str = "geoform/0.1"
    api_key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.debounce_ms < 0:
            raise ValueError("debounce_ms must not be negative")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.skip_policy = SkipPolicy(self.skip_policy)

    @classmethod
    def from_config(cls, payload: Mapping[str, object], *, api_key: Optional[str] = None) -> "GeoformSettings":
        return cls(
            debounce_ms=int(payload.get("debounce_ms", 500)),
            timeout_seconds=float(payload.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            skip_policy=SkipPolicy(str(payload.get("skip_policy", SkipPolicy.RETAIN.value))),
            geocoder_url=str(payload.get("geocoder_url", GOOGLE_GEOCODE_URL)),
            user_agent=str(payload.get("user_agent", "geoform/0.1")),
            api_key=api_key,
        )


def load_settings(path: Path) -> Dict[str, object]:
    """Read the TOML configuration file."""
    with path.open("rb") as handle:
        return tomllib.load(handle)


def resolve_settings(path: Path = DEFAULT_SETTINGS_PATH) -> GeoformSettings:
    """Combine the TOML file, ``.env`` and the environment into settings."""
    load_dotenv()
    config = load_settings(path) if path.exists() else {}
    return GeoformSettings.from_config(config.get("geocode", {}), api_key=os.getenv(API_KEY_ENV))
