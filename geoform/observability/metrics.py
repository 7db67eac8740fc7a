"""Lightweight in-process metrics for a form's geocoding activity."""
from __future__ import annotations

import time
from collections import defaultdict
from pathlib import Path
from typing import Dict, Mapping, Optional

import orjson


class MetricsRegistry:
    """Holds mutable counters for the current process."""

    def __init__(self) -> None:
        self._counters: Dict[str, int] = defaultdict(int)
        self._register_defaults()

    def _register_defaults(self) -> None:
        defaults = [
            "decision_cycles",
            "debounce_replacements",
            "geocode_calls",
            "geocode_success",
            "geocode_failures",
            "geocode_timeouts",
            "cache_hits",
            "skips",
            "stale_discards",
            "reference_errors",
        ]
        for key in defaults:
            self._counters[key] = 0

    def incr(self, name: str, value: int = 1) -> None:
        """Increment the named counter by the supplied value."""
        self._counters[name] += value

    def get(self, name: str) -> int:
        """Return the current value for the counter, defaulting to zero."""
        return self._counters.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        """Return a shallow copy of all counters for reporting."""
        return dict(self._counters)

    def export(self, *, path: Path, form_id: str, outcome: Optional[Mapping[str, object]] = None) -> Path:
        """Write counters and the form's final geocoding outcome to a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "form_id": form_id,
            "outcome": dict(outcome or {}),
            "counters": self.snapshot(),
            "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
        return path
