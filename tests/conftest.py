"""Shared fixtures for the gsrunner test-suite."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from pathlib import Path

import pytest

from gsrunner.boot.logging import join_logging


class RecordingRegistry:
    """Fake registry consumer that records every published snapshot."""

    def __init__(self) -> None:
        self.updates: list[dict[str, int]] = []

    def update(self, items: Mapping[str, int]) -> None:
        self.updates.append(dict(items))


@pytest.fixture
def recording_registry() -> RecordingRegistry:
    return RecordingRegistry()


@pytest.fixture(autouse=True)
def _restore_root_logging() -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    join_logging()
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("LOG_LEVEL", "GSRUNNER_LOG_LEVEL", "GSRUNNER_LOG_FORMAT", "GSRUNNER_LOG_BACKUP_COUNT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_file(tmp_path: Path):
    def _write(name: str, content: str | bytes) -> Path:
        target = tmp_path / name
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
        return target

    return _write
