"""Root test configuration for blockpaths.

Clears BLOCKPATHS_* environment variables so a developer's shell never leaks
into config tests, and provides a recording logger for asserting on gate
diagnostics without capturing stdout.
"""

from __future__ import annotations

from typing import Any

import pytest


class RecordingLogger:
    """Minimal stand-in for a structlog BoundLogger; records every call."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, level: str, event: str, **kwargs: Any) -> None:
        self.records.append((level, event, kwargs))

    def debug(self, event: str, **kwargs: Any) -> None:
        self._record("debug", event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._record("info", event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._record("warning", event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._record("error", event, **kwargs)

    def events(self, level: str | None = None) -> list[str]:
        return [event for lvl, event, _ in self.records if level is None or lvl == level]


@pytest.fixture(autouse=True)
def clear_blockpaths_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BLOCKPATHS_CONFIG", "BLOCKPATHS_PORT", "BLOCKPATHS_UPSTREAM"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()
