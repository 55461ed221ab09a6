"""Service registry loading for the gsrpc layer."""

from __future__ import annotations

from .loader import (
    ID_OUT_OF_RANGE,
    INVALID_FORMAT,
    MAX_SERVICE_ID,
    LoaderState,
    RegistryEntry,
    RegistryLineError,
    RegistryLoader,
    load_registry,
    load_registry_file,
    parse_registry_line,
)
from .rpc import RpcRegistry, ServiceRegistry, default_registry, registry_update

__all__ = [
    "ID_OUT_OF_RANGE",
    "INVALID_FORMAT",
    "MAX_SERVICE_ID",
    "LoaderState",
    "RegistryEntry",
    "RegistryLineError",
    "RegistryLoader",
    "RpcRegistry",
    "ServiceRegistry",
    "default_registry",
    "load_registry",
    "load_registry_file",
    "parse_registry_line",
    "registry_update",
]
