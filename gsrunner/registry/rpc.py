"""In-process RPC service registry that receives loaded snapshots."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Protocol, runtime_checkable

from ..observability.metrics import REGISTRY_ENTRIES

LOG = logging.getLogger(__name__)

__all__ = [
    "RpcRegistry",
    "ServiceRegistry",
    "default_registry",
    "registry_update",
]


@runtime_checkable
class ServiceRegistry(Protocol):
    """Consumer of registry snapshots published by the loader."""

    def update(self, items: Mapping[str, int]) -> None:
        """Replace the registry contents with ``items``."""


class RpcRegistry:
    """Name to service-id table with atomic bulk replacement."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: Mapping[str, int] = MappingProxyType({})
        self._names: Mapping[int, str] = MappingProxyType({})

    def update(self, items: Mapping[str, int]) -> None:
        ids = dict(items)
        names: dict[int, str] = {}
        for name, service_id in sorted(ids.items()):
            if service_id in names:
                LOG.debug("service id %d shared by %s and %s", service_id, names[service_id], name)
                continue
            names[service_id] = name
        with self._lock:
            self._ids = MappingProxyType(ids)
            self._names = MappingProxyType(names)
        REGISTRY_ENTRIES.set(len(ids))

    def id_of(self, name: str) -> int:
        """Return the id registered for ``name``; raises :class:`KeyError`."""

        return self._ids[name]

    def name_of(self, service_id: int) -> str:
        """Return the first (sorted) name registered for ``service_id``."""

        return self._names[service_id]

    def snapshot(self) -> Mapping[str, int]:
        """Return a read-only view of the current table."""

        return self._ids

    def __contains__(self, name: object) -> bool:
        return name in self._ids

    def __len__(self) -> int:
        return len(self._ids)


default_registry = RpcRegistry()


def registry_update(items: Mapping[str, int]) -> None:
    """Publish ``items`` to :data:`default_registry`."""

    default_registry.update(items)
