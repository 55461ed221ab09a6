"""Parser for gsrpc service registry files.

A registry file maps dotted service names to 16-bit ids, one entry per
line::

    gschat.MailHub=1
    gschat.Push=2

Any line that does not match ``NAME=ID`` (blank lines and comments
included) aborts the whole load. Nothing is published to the downstream
registry unless every line is valid.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from ..exceptions import RegistryError
from ..observability.metrics import REGISTRY_LOADS
from .rpc import ServiceRegistry, default_registry

LOG = logging.getLogger(__name__)

__all__ = [
    "MAX_SERVICE_ID",
    "INVALID_FORMAT",
    "OPEN_ERROR",
    "READ_ERROR",
    "ID_OUT_OF_RANGE",
    "LoaderState",
    "RegistryEntry",
    "RegistryLineError",
    "RegistryLoader",
    "load_registry",
    "load_registry_file",
    "parse_registry_line",
]

MAX_SERVICE_ID = 0xFFFF
_INT32_MAX = 2**31 - 1

INVALID_FORMAT = "invalid format"
ID_OUT_OF_RANGE = "id out of range"
READ_ERROR = "read error"
OPEN_ERROR = "open error"

_LINE_RE = re.compile(r"^(?P<name>[A-Za-z0-9_]+(?:\.[A-Za-z0-9_]+)*)=(?P<id>[0-9]+)$")


class RegistryEntry(NamedTuple):
    name: str
    id: int


class RegistryLineError(ValueError):
    """A single registry line failed validation; ``reason`` names the check."""

    def __init__(self, reason: str, line: str):
        super().__init__(f"{reason}: {line!r}")
        self.reason = reason
        self.line = line


class LoaderState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    FAILED = "failed"


def _strip_newline(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    return line


def parse_registry_line(line: str) -> RegistryEntry:
    """Parse one ``NAME=ID`` line into a :class:`RegistryEntry`."""

    text = _strip_newline(line)
    # fullmatch so a trailing newline cannot satisfy ``$``
    match = _LINE_RE.fullmatch(text)
    if match is None:
        raise RegistryLineError(INVALID_FORMAT, text)
    try:
        value = int(match.group("id"))
    except ValueError as exc:
        raise RegistryLineError(INVALID_FORMAT, text) from exc
    # ids are parsed as signed 32-bit integers; overflow is a format error
    if value > _INT32_MAX:
        raise RegistryLineError(INVALID_FORMAT, text)
    if value > MAX_SERVICE_ID:
        raise RegistryLineError(ID_OUT_OF_RANGE, text)
    return RegistryEntry(match.group("name"), value)


class RegistryLoader:
    """Scan a registry stream and publish the result as one snapshot.

    ``state`` moves ``idle -> reading`` on :meth:`load` and back to
    ``idle`` on success, or to ``failed`` when a line is rejected. A
    failed loader can be reused; the next load starts from scratch.
    """

    def __init__(self, registry: ServiceRegistry | None = None) -> None:
        self.registry = registry if registry is not None else default_registry
        self.state = LoaderState.IDLE

    def _fail(self, reason: str, source: str, lines: int) -> RegistryError:
        self.state = LoaderState.FAILED
        REGISTRY_LOADS.labels(outcome="failed").inc()
        return RegistryError(reason, source, lines)

    def scan(self, stream: Iterable[str], source: str) -> dict[str, int]:
        """Validate every line of ``stream`` and return the mapping.

        The mapping is not published; see :meth:`load`.
        """

        self.state = LoaderState.READING
        items: dict[str, int] = {}
        # counts successfully consumed lines only
        lines = 0
        iterator = iter(stream)
        while True:
            try:
                raw = next(iterator)
            except StopIteration:
                break
            except (OSError, UnicodeDecodeError) as exc:
                LOG.error("read registry file error :%s: %s", source, exc)
                raise self._fail(READ_ERROR, source, lines) from exc

            try:
                entry = parse_registry_line(raw)
            except RegistryLineError as exc:
                raise self._fail(exc.reason, source, lines) from exc

            if entry.name in items:
                LOG.warning(
                    "registry %s(%d): %s redefined (%d -> %d)",
                    source,
                    lines,
                    entry.name,
                    items[entry.name],
                    entry.id,
                )
            items[entry.name] = entry.id
            lines += 1
        return items

    def load(self, stream: Iterable[str], source: str) -> dict[str, int]:
        """Scan ``stream`` and hand the complete mapping to the registry."""

        items = self.scan(stream, source)
        self.registry.update(items)
        self.state = LoaderState.IDLE
        REGISTRY_LOADS.labels(outcome="success").inc()
        LOG.debug("published %d registry entries from %s", len(items), source)
        return items


def load_registry(
    stream: Iterable[str], source: str, registry: ServiceRegistry | None = None
) -> dict[str, int]:
    """Load ``stream`` into ``registry`` (the default registry if omitted)."""

    return RegistryLoader(registry).load(stream, source)


def load_registry_file(
    path: str | Path, registry: ServiceRegistry | None = None
) -> dict[str, int]:
    """Open ``path`` as UTF-8 text and load it into ``registry``."""

    source = str(path)
    try:
        handle = Path(path).open("r", encoding="utf-8", newline="\n")
    except OSError as exc:
        LOG.error("open registry file error :%s: %s", source, exc)
        REGISTRY_LOADS.labels(outcome="failed").inc()
        raise RegistryError(OPEN_ERROR, source, 0) from exc
    with handle:
        return load_registry(handle, source, registry)
