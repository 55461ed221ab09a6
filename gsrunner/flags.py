"""Typed command-line flag declarations for gsrunner services.

Each flag has a short name (used on the command line as ``-name`` or
``--name``) and a fully-qualified name (the dotted key its resolved value
is stored under in :class:`~gsrunner.config.ConfigStore`). Both names are
unique within a :class:`FlagSet`; violations raise :class:`FlagError` at
declaration time, before anything is parsed.
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any

from .config.store import INT64_MAX, INT64_MIN, UINT64_MAX, ConfigStore, narrow_float32
from .exceptions import ConfigError, FlagError

LOG = logging.getLogger(__name__)

__all__ = [
    "FlagHandle",
    "FlagKind",
    "FlagSet",
    "Option",
]

_RESERVED_NAMES = frozenset({"h", "help"})
_POSITIONAL_DEST = "_positional"


def _integer(value: object) -> int:
    if isinstance(value, bool):
        raise TypeError("boolean is not an integer flag value")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{value!r} is not integral")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text, 0)
        except ValueError:
            # int(..., 0) refuses leading zeros such as "010"
            return int(text, 10)
    raise TypeError(f"unsupported integer flag value {value!r}")


def _unsigned(value: object) -> int:
    number = _integer(value)
    if not 0 <= number <= UINT64_MAX:
        raise ValueError(f"{number} is out of range for uint64")
    return number


def string(value: object) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value


def int64(value: object) -> int:
    number = _integer(value)
    if not INT64_MIN <= number <= INT64_MAX:
        raise ValueError(f"{number} is out of range for int64")
    return number


def uint64(value: object) -> int:
    return _unsigned(value)


def float64(value: object) -> float:
    if isinstance(value, bool):
        raise TypeError("boolean is not a float flag value")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise TypeError(f"unsupported float flag value {value!r}")


def float32(value: object) -> float:
    try:
        return narrow_float32(float64(value))
    except OverflowError as exc:
        raise ValueError(str(exc)) from exc


def seconds(value: object) -> int:
    return _unsigned(value)


def milliseconds(value: object) -> int:
    return _unsigned(value)


class FlagKind(str, Enum):
    """Value kinds a flag can be declared with."""

    STRING = "string"
    INT = "int"
    UINT = "uint"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    SECONDS = "seconds"
    MILLISECONDS = "milliseconds"

    @property
    def converter(self) -> Callable[[object], Any]:
        return _CONVERTERS[self]

    def convert(self, value: object) -> Any:
        return self.converter(value)

    def read(self, store: ConfigStore, key: str, default: Any) -> Any:
        """Read ``key`` from ``store`` coerced to this kind."""

        if self is FlagKind.STRING:
            return store.string(key, default)
        if self is FlagKind.INT:
            return store.int64(key, default)
        if self is FlagKind.FLOAT32:
            return store.float32(key, default)
        if self is FlagKind.FLOAT64:
            return store.float64(key, default)
        return store.uint64(key, default)

    @property
    def is_duration(self) -> bool:
        return self in (FlagKind.SECONDS, FlagKind.MILLISECONDS)


_CONVERTERS: dict[FlagKind, Callable[[object], Any]] = {
    FlagKind.STRING: string,
    FlagKind.INT: int64,
    FlagKind.UINT: uint64,
    FlagKind.FLOAT32: float32,
    FlagKind.FLOAT64: float64,
    FlagKind.SECONDS: seconds,
    FlagKind.MILLISECONDS: milliseconds,
}


@dataclass(frozen=True)
class Option:
    """Immutable description of a declared flag."""

    short_name: str
    full_name: str
    kind: FlagKind
    default: Any
    description: str = ""


@dataclass(frozen=True)
class FlagHandle:
    """Handle returned from a declaration; reads the resolved value."""

    option: Option
    flags: FlagSet

    @property
    def name(self) -> str:
        return self.option.short_name

    @property
    def full_name(self) -> str:
        return self.option.full_name

    def _check_resolved(self) -> None:
        if not self.flags.resolved:
            raise ConfigError(
                f"flag {self.option.short_name} read before flags were resolved",
                key=self.option.full_name,
            )

    @property
    def value(self) -> Any:
        self._check_resolved()
        return self.option.kind.read(self.flags.store, self.option.full_name, self.option.default)

    @property
    def duration(self) -> timedelta:
        """Return the value of a ``seconds``/``milliseconds`` flag as a timedelta."""

        self._check_resolved()
        if self.option.kind is FlagKind.SECONDS:
            return self.flags.store.seconds(self.option.full_name, self.option.default)
        if self.option.kind is FlagKind.MILLISECONDS:
            return self.flags.store.milliseconds(self.option.full_name, self.option.default)
        raise TypeError(f"flag {self.option.short_name} is a {self.option.kind.value} flag")


class FlagSet:
    """Registrar of typed flags backed by :mod:`argparse`."""

    def __init__(self, prog: str | None = None, store: ConfigStore | None = None) -> None:
        self.prog = prog
        self.store = store if store is not None else ConfigStore()
        self._options: dict[str, Option] = {}
        self._full_names: dict[str, str] = {}
        self._values: dict[str, Any] = {}
        self._explicit: set[str] = set()
        self._positional: list[str] = []
        self._parsed = False
        self._resolved = False

    # ------------------------------------------------------------ declaration
    def _check_name(self, short_name: str, full_name: str) -> None:
        if short_name in self._options:
            raise FlagError(f"duplicate flag name :{short_name}")
        if full_name in self._full_names:
            raise FlagError(f"duplicate flag fullname :{full_name}")
        if not short_name or short_name.startswith("-") or "=" in short_name or any(
            ch.isspace() for ch in short_name
        ):
            raise FlagError(f"invalid flag name :{short_name!r}")
        if short_name in _RESERVED_NAMES:
            raise FlagError(f"reserved flag name :{short_name}")
        if not full_name:
            raise FlagError(f"empty flag fullname for :{short_name}")

    def declare(
        self,
        kind: FlagKind | str,
        short_name: str,
        full_name: str,
        default: Any,
        description: str = "",
    ) -> FlagHandle:
        """Declare a flag and return a handle to its resolved value."""

        if self._parsed:
            raise FlagError(f"flag {short_name} declared after parsing")
        try:
            kind = FlagKind(kind)
        except ValueError as exc:
            raise FlagError(f"unknown flag kind :{kind}") from exc
        self._check_name(short_name, full_name)
        try:
            canonical = kind.convert(default)
        except (TypeError, ValueError) as exc:
            raise FlagError(
                f"invalid default for flag {short_name} ({kind.value}): {default!r}"
            ) from exc

        option = Option(short_name, full_name, kind, canonical, description)
        self._options[short_name] = option
        self._full_names[full_name] = short_name
        return FlagHandle(option, self)

    # ---------------------------------------------------------------- queries
    @property
    def options(self) -> tuple[Option, ...]:
        return tuple(self._options.values())

    def full_name(self, short_name: str) -> str:
        return self._options[short_name].full_name

    def __contains__(self, short_name: object) -> bool:
        return short_name in self._options

    @property
    def parsed(self) -> bool:
        return self._parsed

    @property
    def resolved(self) -> bool:
        return self._resolved

    @property
    def args(self) -> list[str]:
        """Positional arguments left after the flags."""

        return list(self._positional)

    def value(self, short_name: str) -> Any:
        """Return the parsed (pre-merge) value of ``short_name``."""

        if not self._parsed:
            raise ConfigError(f"flag {short_name} read before parsing")
        return self._values[short_name]

    def is_explicit(self, short_name: str) -> bool:
        return short_name in self._explicit

    # ---------------------------------------------------------------- parsing
    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog=self.prog,
            allow_abbrev=False,
            argument_default=argparse.SUPPRESS,
        )
        for option in self._options.values():
            parser.add_argument(
                f"-{option.short_name}",
                f"--{option.short_name}",
                dest=option.short_name,
                type=option.kind.converter,
                metavar=option.kind.value,
                help=f"{option.description} (default: {option.default!r})",
            )
        parser.add_argument(_POSITIONAL_DEST, nargs=argparse.REMAINDER, help=argparse.SUPPRESS)
        return parser

    def parse(self, argv: Sequence[str] | None = None) -> dict[str, Any]:
        """Parse ``argv`` and return the value of every declared flag."""

        namespace = self.build_parser().parse_args(list(argv) if argv is not None else None)
        parsed = vars(namespace)
        self._positional = list(parsed.pop(_POSITIONAL_DEST, None) or [])
        self._explicit = set(parsed)
        self._values = {
            name: parsed.get(name, option.default) for name, option in self._options.items()
        }
        self._parsed = True
        return dict(self._values)

    def apply(self) -> None:
        """Push parsed values into :attr:`store` under their full names.

        Explicit command-line values always overwrite whatever the store
        holds; defaults only fill keys the store does not have yet. Every
        resulting value must read back as its flag's kind, otherwise
        :class:`ConfigError` is raised and the flags stay unresolved.
        """

        if not self._parsed:
            raise ConfigError("flags must be parsed before they are applied")
        for name, option in self._options.items():
            if name in self._explicit or option.full_name not in self.store:
                self.store.update(option.full_name, self._values[name])
            else:
                LOG.debug("config value kept for %s (flag -%s not given)", option.full_name, name)
        for option in self._options.values():
            self._check_value(option)
        self._resolved = True

    def _check_value(self, option: Option) -> None:
        option.kind.read(self.store, option.full_name, option.default)
        if option.kind is FlagKind.SECONDS:
            self.store.seconds(option.full_name, option.default)
        elif option.kind is FlagKind.MILLISECONDS:
            self.store.milliseconds(option.full_name, option.default)
