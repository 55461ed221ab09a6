"""gsrunner: bootstrap helper for gsrpc services.

Declares typed command-line flags, merges them over a JSON config file,
sets up logging and loads the service registry before handing control to
the service entry point.
"""

from __future__ import annotations

from .config import ConfigStore
from .exceptions import ConfigError, FlagError, RegistryError, RunnerError
from .flags import FlagHandle, FlagKind, FlagSet, Option
from .registry import (
    RegistryEntry,
    RegistryLoader,
    RpcRegistry,
    default_registry,
    load_registry,
    load_registry_file,
    parse_registry_line,
)
from .runner import Runner, run

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ConfigStore",
    "FlagError",
    "FlagHandle",
    "FlagKind",
    "FlagSet",
    "Option",
    "RegistryEntry",
    "RegistryError",
    "RegistryLoader",
    "RpcRegistry",
    "Runner",
    "RunnerError",
    "__version__",
    "default_registry",
    "load_registry",
    "load_registry_file",
    "parse_registry_line",
    "run",
]
