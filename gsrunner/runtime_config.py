"""Runtime configuration loaded from environment variables and .env files."""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class RuntimeSettings(BaseSettings):
    """Logging defaults resolved from the process environment.

    These apply before flags are parsed; ``-level`` and the config file
    take over once startup reaches the logging step.
    """

    model_config = SettingsConfigDict(
        env_prefix="GSRUNNER_",
        env_file=".env",
        extra="ignore",
    )

    log_level: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GSRUNNER_LOG_LEVEL", "LOG_LEVEL"),
    )
    log_format: str = _DEFAULT_FORMAT
    log_datefmt: str = _DEFAULT_DATEFMT
    log_backup_count: int = Field(default=5, ge=0)

    @field_validator("log_level", mode="before")
    @classmethod
    def _blank_level(cls, value: str | None) -> str | None:
        if value is None or not str(value).strip():
            return None
        return str(value).strip()


def load_runtime_settings() -> RuntimeSettings:
    """Return a fresh :class:`RuntimeSettings` read from the environment."""

    return RuntimeSettings()


__all__ = ["RuntimeSettings", "load_runtime_settings"]
