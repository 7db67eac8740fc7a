"""Tracing helpers for geocoder calls and resolution outcomes."""
from __future__ import annotations

import contextlib
import time
from typing import Iterator, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


def _logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger("geoform.trace")


def bind_form_context(*, form_id: str) -> None:
    bind_contextvars(form_id=form_id)


def clear_context() -> None:
    clear_contextvars()


@contextlib.contextmanager
def span(*, name: str, address: Optional[str] = None) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        _logger().info("trace_span", span=name, address=address, elapsed_ms=elapsed_ms)


def log_geocode_result(*, address: str, sequence: int, status: str, reason: Optional[str]) -> None:
    _logger().info(
        "geocode_result",
        address=address,
        sequence=sequence,
        status=status,
        reason=reason,
    )


def log_stale_discard(*, address: str, sequence: int, latest: int) -> None:
    _logger().debug("geocode_stale_discard", address=address, sequence=sequence, latest=latest)
