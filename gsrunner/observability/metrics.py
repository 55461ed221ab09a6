"""Prometheus metric definitions for gsrunner startup."""

from __future__ import annotations

from collections.abc import Iterable

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge

__all__ = [
    "REGISTRY_ENTRIES",
    "REGISTRY_LOADS",
    "STARTUP_FAILURES",
    "ensure_metrics_registered",
]


REGISTRY_LOADS = Counter(
    "gsrunner_registry_loads_total",
    "Total service registry file loads grouped by outcome.",
    ("outcome",),
    registry=None,
)


REGISTRY_ENTRIES = Gauge(
    "gsrunner_registry_entries",
    "Number of entries in the last published service registry snapshot.",
    registry=None,
)


STARTUP_FAILURES = Counter(
    "gsrunner_startup_failures_total",
    "Fatal startup failures grouped by the stage that raised them.",
    ("stage",),
    registry=None,
)


def _iter_metrics() -> Iterable[Counter | Gauge]:
    yield REGISTRY_LOADS
    yield REGISTRY_ENTRIES
    yield STARTUP_FAILURES


def ensure_metrics_registered(
    registry: CollectorRegistry | None = None,
) -> None:
    """Register gsrunner metrics with ``registry`` if not already present."""

    target = registry or REGISTRY
    for metric in _iter_metrics():
        try:
            target.register(metric)
        except ValueError:
            # already registered under this name
            continue
