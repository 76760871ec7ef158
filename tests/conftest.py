# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Shared fixtures: a served directory tree and ASGI call helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import quote

import pytest


class MockSend:
    """Capture ASGI send messages for testing."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def __call__(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def start_message(self) -> dict[str, Any]:
        """Get the http.response.start message."""
        return next(m for m in self.messages if m["type"] == "http.response.start")

    @property
    def body_messages(self) -> list[dict[str, Any]]:
        """Get all http.response.body messages."""
        return [m for m in self.messages if m["type"] == "http.response.body"]

    @property
    def status(self) -> int:
        """Get response status code."""
        return self.start_message["status"]

    @property
    def headers(self) -> dict[bytes, bytes]:
        """Get headers as dict."""
        return dict(self.start_message["headers"])

    @property
    def header_names(self) -> list[bytes]:
        """Header names in the order they were sent."""
        return [name for name, _ in self.start_message["headers"]]

    def header(self, name: str) -> str | None:
        """Get a decoded header value by lowercase name, None if absent."""
        value = self.headers.get(name.encode("latin-1"))
        return value.decode("latin-1") if value is not None else None

    @property
    def body(self) -> bytes:
        """Get complete body (concatenated from all body messages)."""
        return b"".join(m.get("body", b"") for m in self.body_messages)


def make_scope(
    path: str = "/",
    method: str = "GET",
    headers: dict[str, str] | None = None,
    query_string: bytes = b"",
) -> dict[str, Any]:
    """Create an HTTP scope."""
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": quote(path).encode("ascii"),
        "root_path": "",
        "query_string": query_string,
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ],
        "client": ("127.0.0.1", 50000),
        "server": ("127.0.0.1", 8100),
    }


async def mock_receive() -> dict[str, Any]:
    """Mock receive callable (request bodies are not read)."""
    return {"type": "http.request", "body": b"", "more_body": False}


async def call_app(
    app: Callable[..., Awaitable[None]],
    path: str = "/",
    method: str = "GET",
    headers: dict[str, str] | None = None,
    query_string: bytes = b"",
) -> MockSend:
    """Run one request through an ASGI app and return the captured response."""
    send = MockSend()
    await app(make_scope(path, method, headers, query_string), mock_receive, send)
    return send


@pytest.fixture
def send() -> MockSend:
    """Create a mock send callable."""
    return MockSend()


@pytest.fixture
def call() -> Callable[..., Awaitable[MockSend]]:
    """The call_app helper, as a fixture."""
    return call_app


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """Directory tree served in tests.

    site/
        hello.txt          "hello world\\n"
        empty.txt          ""
        style.css
        sub/file.txt       "nested file"
        sub/page.html
        sub/deeper/x.txt
        docs/index.html
    secret.txt             outside the served root
    """
    root = tmp_path / "site"
    root.mkdir()
    (root / "hello.txt").write_bytes(b"hello world\n")
    (root / "empty.txt").write_bytes(b"")
    (root / "style.css").write_text("body { color: red; }")
    (root / "sub").mkdir()
    (root / "sub" / "file.txt").write_bytes(b"nested file")
    (root / "sub" / "page.html").write_text("<p>page</p>")
    (root / "sub" / "deeper").mkdir()
    (root / "sub" / "deeper" / "x.txt").write_text("x")
    (root / "docs").mkdir()
    (root / "docs" / "index.html").write_text("<h1>docs</h1>")
    (tmp_path / "secret.txt").write_text("top secret")
    return root
