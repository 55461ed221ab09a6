"""Configuration store keyed by fully-qualified dotted names.

The store replaces a process-wide string-keyed registry with an explicit
object owned by :class:`gsrunner.runner.Runner`. JSON documents are
flattened into dotted keys, command-line flags are merged on top, and the
store is frozen before the caller's entry point runs.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterator, Mapping
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any

import numpy as np
from pydantic import ConfigDict, Field, TypeAdapter, ValidationError

from ..exceptions import ConfigError

LOG = logging.getLogger(__name__)

__all__ = [
    "ConfigStore",
    "INT64_MAX",
    "INT64_MIN",
    "UINT64_MAX",
    "flatten",
    "narrow_float32",
]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1

_MISSING = object()

_STRING = TypeAdapter(str, config=ConfigDict(coerce_numbers_to_str=True))
_INT64 = TypeAdapter(Annotated[int, Field(ge=INT64_MIN, le=INT64_MAX)])
_UINT64 = TypeAdapter(Annotated[int, Field(ge=0, le=UINT64_MAX)])
_FLOAT = TypeAdapter(float)


def narrow_float32(value: float) -> float:
    """Return ``value`` rounded to single precision.

    Raises :class:`OverflowError` when a finite input does not fit in a
    32-bit float.
    """

    with np.errstate(over="ignore"):
        narrowed = np.float32(value)
    if math.isfinite(value) and not np.isfinite(narrowed):
        raise OverflowError(f"{value!r} is out of range for float32")
    return float(narrowed)


def flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into ``{"a.b.c": leaf}`` form."""

    flat: dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten(value, name))
        else:
            flat[name] = value
    return flat


class ConfigStore:
    """Mutable-until-frozen mapping of fully-qualified names to values."""

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = flatten(values) if values else {}
        self._frozen = False

    # ------------------------------------------------------------------ writes
    def _check_writable(self, key: str | None = None) -> None:
        if self._frozen:
            raise ConfigError("config store is read-only after startup", key=key)

    def update(self, key: str, value: Any) -> None:
        """Set ``key`` to ``value``, replacing any previous value."""

        self._check_writable(key)
        self._values[key] = value

    def merge(self, values: Mapping[str, Any]) -> None:
        """Merge a (possibly nested) mapping into the store."""

        self._check_writable()
        self._values.update(flatten(values))

    def load_json(self, path: str | Path) -> None:
        """Load a JSON object from ``path`` and merge it into the store."""

        self._check_writable()
        source = Path(path)
        try:
            with source.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigError(f"load config file error :{source}: {exc}", path=str(source)) from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(
                f"load config file error :{source}: invalid json at line {exc.lineno}",
                path=str(source),
            ) from exc
        if not isinstance(data, dict):
            raise ConfigError(
                f"load config file error :{source}: top level must be an object",
                path=str(source),
            )
        self.merge(data)
        LOG.debug("merged %d config keys from %s", len(flatten(data)), source)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------- reads
    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def keys(self) -> list[str]:
        return sorted(self._values)

    def as_dict(self) -> dict[str, Any]:
        """Return a shallow copy of every stored key."""

        return dict(self._values)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def _coerce(self, key: str, default: Any, adapter: TypeAdapter, kind: str) -> Any:
        raw = self._values.get(key, _MISSING)
        if raw is _MISSING:
            return default
        try:
            return adapter.validate_python(raw)
        except ValidationError as exc:
            detail = exc.errors()[0]["msg"] if exc.errors() else str(exc)
            raise ConfigError(
                f"config key {key} is not a valid {kind}: {raw!r} ({detail})", key=key
            ) from exc

    def string(self, key: str, default: str = "") -> str:
        return self._coerce(key, default, _STRING, "string")

    def int64(self, key: str, default: int = 0) -> int:
        return self._coerce(key, default, _INT64, "int64")

    def uint64(self, key: str, default: int = 0) -> int:
        return self._coerce(key, default, _UINT64, "uint64")

    def float64(self, key: str, default: float = 0.0) -> float:
        return self._coerce(key, default, _FLOAT, "float64")

    def float32(self, key: str, default: float = 0.0) -> float:
        value = self._coerce(key, default, _FLOAT, "float32")
        try:
            return narrow_float32(value)
        except OverflowError as exc:
            raise ConfigError(f"config key {key} is not a valid float32: {exc}", key=key) from exc

    def seconds(self, key: str, default: int = 0) -> timedelta:
        """Return a seconds count stored under ``key`` as a :class:`timedelta`."""

        return self._duration(key, self.uint64(key, default), "seconds")

    def milliseconds(self, key: str, default: int = 0) -> timedelta:
        """Return a milliseconds count stored under ``key`` as a :class:`timedelta`."""

        return self._duration(key, self.uint64(key, default), "milliseconds")

    @staticmethod
    def _duration(key: str, count: int, unit: str) -> timedelta:
        try:
            return timedelta(**{unit: count})
        except OverflowError as exc:
            raise ConfigError(f"config key {key} overflows a duration: {count} {unit}", key=key) from exc

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        state = "frozen" if self._frozen else "mutable"
        return f"ConfigStore({len(self._values)} keys, {state})"
