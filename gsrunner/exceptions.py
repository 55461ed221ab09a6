"""Exception hierarchy shared by the gsrunner bootstrap components."""

from __future__ import annotations

__all__ = [
    "RunnerError",
    "FlagError",
    "ConfigError",
    "RegistryError",
]


class RunnerError(RuntimeError):
    """Base class for fatal startup errors raised by gsrunner."""


class FlagError(RunnerError):
    """Raised when a flag declaration violates the registrar invariants."""


class ConfigError(RunnerError):
    """Raised when configuration cannot be loaded or read."""

    def __init__(self, message: str, *, path: str | None = None, key: str | None = None):
        super().__init__(message)
        self.path = path
        self.key = key


class RegistryError(RunnerError):
    """Raised when a registry file cannot be read or fails validation.

    ``line`` is the number of lines successfully consumed before the
    failure, which for a strictly line-by-line scan is also the 0-based
    index of the offending line.
    """

    def __init__(self, reason: str, source: str, line: int = 0):
        self.reason = reason
        self.source = source
        self.line = line
        super().__init__(f"load registry file error:\n\t{reason}\n\t{source}({line})")
