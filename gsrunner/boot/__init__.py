"""Process bootstrap helpers."""

from __future__ import annotations

from .logging import (
    add_file_sink,
    configure_logging,
    installed_sinks,
    join_logging,
    parse_level,
    set_level,
)

__all__ = [
    "add_file_sink",
    "configure_logging",
    "installed_sinks",
    "join_logging",
    "parse_level",
    "set_level",
]
