"""Configuration helpers exposed at :mod:`gsrunner.config`."""

from __future__ import annotations

from .store import (
    INT64_MAX,
    INT64_MIN,
    UINT64_MAX,
    ConfigStore,
    flatten,
    narrow_float32,
)

__all__ = [
    "ConfigStore",
    "INT64_MAX",
    "INT64_MIN",
    "UINT64_MAX",
    "flatten",
    "narrow_float32",
]
