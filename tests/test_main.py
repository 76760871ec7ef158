# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Tests for the command line entry point."""

from pathlib import Path

import pytest

from staticserve.__main__ import main
from staticserve.exceptions import ListenerBindError
from staticserve.server import StaticServer


@pytest.fixture(autouse=True)
def clean_environ(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("PORT", "DIRECTORY", "BASE_URI", "ETAG", "METRICS", "METRICS_PORT"):
        monkeypatch.delenv(var, raising=False)


def test_missing_directory(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    assert main(["-d", str(tmp_path / "missing")]) == 1
    assert "is not a directory" in capsys.readouterr().err


def test_invalid_environment(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    monkeypatch.setenv("PORT", "eighty")
    assert main([]) == 2
    assert "PORT" in capsys.readouterr().err


def test_bind_failure(site: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def occupied(self: StaticServer) -> None:
        raise ListenerBindError("0.0.0.0", self.config.port, "Address already in use")

    monkeypatch.setattr(StaticServer, "run", occupied)
    assert main(["-d", str(site), "-p", "8123"]) == 1


def test_clean_shutdown(site: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[StaticServer] = []

    def run(self: StaticServer) -> None:
        calls.append(self)

    monkeypatch.setattr(StaticServer, "run", run)
    assert main(["-d", str(site), "-b", "/static", "-e"]) == 0
    assert calls[0].config.base_uri == "/static"
    assert calls[0].config.etag is True
