"""Runtime observability primitives for gsrunner."""

from __future__ import annotations

from .metrics import (
    REGISTRY_ENTRIES,
    REGISTRY_LOADS,
    STARTUP_FAILURES,
    ensure_metrics_registered,
)

__all__ = [
    "REGISTRY_ENTRIES",
    "REGISTRY_LOADS",
    "STARTUP_FAILURES",
    "ensure_metrics_registered",
]
