"""Tests for the uvicorn entry point."""

from __future__ import annotations

import pytest

from blockpaths import run
from blockpaths.config import Config, GateConfig, ProxyConfig


def test_unusable_gate_exits_before_serving(monkeypatch, capsys) -> None:
    monkeypatch.setattr(run, "load_config", lambda: Config.defaults())
    served: list[object] = []
    monkeypatch.setattr(run.uvicorn, "run", lambda *a, **kw: served.append(a))

    with pytest.raises(SystemExit) as exc_info:
        run.main()

    assert exc_info.value.code == 1
    assert "the regex list is empty" in capsys.readouterr().err
    assert served == []


def test_serves_on_configured_binding(monkeypatch) -> None:
    config = Config(gate=GateConfig(regex=("^/wp",)), proxy=ProxyConfig(host="127.0.0.1", port=9123))
    monkeypatch.setattr(run, "load_config", lambda: config)
    calls: list[dict] = []
    monkeypatch.setattr(run.uvicorn, "run", lambda app, **kw: calls.append(kw))

    run.main()

    assert len(calls) == 1
    assert calls[0]["host"] == "127.0.0.1"
    assert calls[0]["port"] == 9123
    assert calls[0]["limit_concurrency"] == run.UVICORN_LIMIT_CONCURRENCY
