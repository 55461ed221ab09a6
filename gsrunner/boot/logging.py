"""Logging helpers for gsrunner services."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from ..runtime_config import RuntimeSettings, load_runtime_settings

__all__ = [
    "add_file_sink",
    "configure_logging",
    "installed_sinks",
    "join_logging",
    "parse_level",
    "set_level",
]

_LEVEL_ALIASES = {
    "TRACE": logging.DEBUG,
    "VERBOSE": logging.DEBUG,
    "WARN": logging.WARNING,
    "FATAL": logging.CRITICAL,
    "ASSERT": logging.CRITICAL,
}

_SINKS: list[logging.Handler] = []


def parse_level(value: str | int) -> int:
    """Return the numeric level named by ``value``.

    Accepts standard level names (case insensitive), the aliases
    ``trace``/``verbose``/``warn``/``fatal``/``assert`` and numeric
    strings. Raises :class:`ValueError` for anything else.
    """

    if isinstance(value, int):
        return value

    candidate = value.strip().upper()
    if not candidate:
        raise ValueError("empty log level")
    if candidate.isdigit():
        return int(candidate)
    if candidate in _LEVEL_ALIASES:
        return _LEVEL_ALIASES[candidate]

    resolved = logging.getLevelName(candidate)
    if isinstance(resolved, int):
        return resolved
    raise ValueError(f"unknown log level {value!r}")


def _coerce_level(value: str | int | None) -> int:
    """Like :func:`parse_level` but falls back to :data:`logging.INFO`."""

    if value is None:
        return logging.INFO
    try:
        return parse_level(value)
    except ValueError:
        return logging.INFO


def configure_logging(
    *, level: str | int | None = None, settings: RuntimeSettings | None = None, **kwargs: Any
) -> int:
    """Configure console logging for gsrunner entry points.

    Parameters
    ----------
    level:
        Optional log level override. When omitted the ``GSRUNNER_LOG_LEVEL``
        (or ``LOG_LEVEL``) environment variable is consulted. ``kwargs`` are
        forwarded to :func:`logging.basicConfig`.
    settings:
        Runtime settings to take the format from; read from the
        environment when omitted.

    Returns
    -------
    int
        The effective logging level applied to the root logger.
    """

    runtime = settings or load_runtime_settings()
    effective_level = _coerce_level(level if level is not None else runtime.log_level)

    logging.basicConfig(
        level=effective_level,
        format=kwargs.pop("format", runtime.log_format),
        datefmt=kwargs.pop("datefmt", runtime.log_datefmt),
        force=kwargs.pop("force", True),
        **kwargs,
    )

    return effective_level


def set_level(level: str | int) -> int:
    """Set the root logger verbosity; raises :class:`ValueError` on bad input."""

    resolved = parse_level(level)
    logging.getLogger().setLevel(resolved)
    return resolved


def add_file_sink(
    directory: str | Path,
    name: str,
    *,
    max_bytes: int = 0,
    settings: RuntimeSettings | None = None,
) -> logging.Handler:
    """Attach a file handler writing ``directory/name`` to the root logger.

    ``max_bytes`` greater than zero enables size based rotation, keeping
    ``log_backup_count`` old files.
    """

    runtime = settings or load_runtime_settings()
    root = Path(directory)
    root.mkdir(parents=True, exist_ok=True)
    target = root / name

    handler: logging.Handler
    if max_bytes > 0:
        handler = RotatingFileHandler(
            target,
            maxBytes=max_bytes,
            backupCount=runtime.log_backup_count,
            encoding="utf-8",
        )
    else:
        handler = logging.FileHandler(target, encoding="utf-8")
    handler.setFormatter(logging.Formatter(runtime.log_format, runtime.log_datefmt))

    logging.getLogger().addHandler(handler)
    _SINKS.append(handler)
    return handler


def installed_sinks() -> tuple[logging.Handler, ...]:
    return tuple(_SINKS)


def join_logging() -> None:
    """Flush and close sinks installed here, then flush the root handlers."""

    root = logging.getLogger()
    while _SINKS:
        handler = _SINKS.pop()
        root.removeHandler(handler)
        handler.flush()
        handler.close()
    for handler in root.handlers:
        handler.flush()
