# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Tests for ETagMiddleware."""

import hashlib
import logging
from pathlib import Path

import pytest

from staticserve.filesystem import RestrictedFilesystem, RootedFilesystem
from staticserve.middleware.etag import ETagMiddleware, compute_etag, etag_matches
from staticserve.static import FileServer

EMPTY_ETAG = '"da39a3ee5e6b4b0d3255bfef95601890afd80709"'


@pytest.fixture
def app(site: Path) -> ETagMiddleware:
    return ETagMiddleware(FileServer(RestrictedFilesystem(RootedFilesystem(site))))


class ChunkedApp:
    """Send a fixed body in several chunks."""

    def __init__(self, chunks: list[bytes], status: int = 200) -> None:
        self.chunks = chunks
        self.status = status
        self.methods: list[str] = []

    async def __call__(self, scope, receive, send) -> None:
        self.methods.append(scope["method"])
        size = sum(len(c) for c in self.chunks)
        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": [(b"content-type", b"text/plain"), (b"content-length", str(size).encode())],
        })
        for chunk in self.chunks:
            await send({"type": "http.response.body", "body": chunk, "more_body": True})
        await send({"type": "http.response.body", "body": b""})


class TestHelpers:
    def test_compute_etag(self) -> None:
        digest = hashlib.sha1(b"hello world\n").hexdigest()
        assert compute_etag(b"hello world\n") == f'"{digest}"'
        assert compute_etag(b"") == EMPTY_ETAG

    def test_etag_matches(self) -> None:
        etag = '"abc"'
        assert etag_matches('"abc"', etag)
        assert etag_matches('W/"abc"', etag)
        assert etag_matches("abc", etag)
        assert etag_matches('"x", "abc"', etag)
        assert etag_matches("*", etag)
        assert not etag_matches('"abd"', etag)
        assert not etag_matches("", etag)
        assert not etag_matches(None, etag)


class TestETagMiddleware:
    """Fingerprints and conditional responses."""

    @pytest.mark.asyncio
    async def test_etag_is_sha1_of_body(self, app: ETagMiddleware, call) -> None:
        response = await call(app, "/hello.txt")
        assert response.status == 200
        assert response.body == b"hello world\n"
        assert response.header("etag") == compute_etag(b"hello world\n")
        assert response.header("content-length") == "12"

    @pytest.mark.asyncio
    async def test_etag_is_stable(self, app: ETagMiddleware, call) -> None:
        first = await call(app, "/hello.txt")
        second = await call(app, "/hello.txt")
        assert first.header("etag") == second.header("etag")

    @pytest.mark.asyncio
    async def test_etag_follows_content(self, site: Path, app: ETagMiddleware, call) -> None:
        before = (await call(app, "/hello.txt")).header("etag")
        (site / "hello.txt").write_bytes(b"changed")
        after = (await call(app, "/hello.txt")).header("etag")
        assert before != after
        assert after == compute_etag(b"changed")

    @pytest.mark.asyncio
    async def test_matching_if_none_match(self, app: ETagMiddleware, call) -> None:
        etag = compute_etag(b"hello world\n")
        response = await call(app, "/hello.txt", headers={"If-None-Match": etag})
        assert response.status == 304
        assert response.body == b""
        assert response.header("etag") == etag
        assert response.header("content-length") is None
        assert response.header("content-type") is None
        assert response.header("last-modified") is not None

    @pytest.mark.asyncio
    async def test_if_none_match_variants(self, app: ETagMiddleware, call) -> None:
        opaque = hashlib.sha1(b"hello world\n").hexdigest()
        for value in (f'W/"{opaque}"', "*", f'"nope", "{opaque}"', opaque):
            response = await call(app, "/hello.txt", headers={"If-None-Match": value})
            assert response.status == 304, value

    @pytest.mark.asyncio
    async def test_mismatch_sends_full_response(self, app: ETagMiddleware, call) -> None:
        response = await call(app, "/hello.txt", headers={"If-None-Match": '"stale"'})
        assert response.status == 200
        assert response.body == b"hello world\n"
        assert response.header("etag") == compute_etag(b"hello world\n")

    @pytest.mark.asyncio
    async def test_empty_file(self, app: ETagMiddleware, call) -> None:
        response = await call(app, "/empty.txt")
        assert response.status == 200
        assert response.header("etag") == EMPTY_ETAG
        response = await call(app, "/empty.txt", headers={"If-None-Match": EMPTY_ETAG})
        assert response.status == 304

    @pytest.mark.asyncio
    async def test_head_reports_same_etag(self, app: ETagMiddleware, call) -> None:
        get = await call(app, "/hello.txt")
        head = await call(app, "/hello.txt", method="HEAD")
        assert head.status == 200
        assert head.body == b""
        assert head.header("etag") == get.header("etag")
        assert head.header("content-length") == "12"

    @pytest.mark.asyncio
    async def test_head_conditional(self, app: ETagMiddleware, call) -> None:
        etag = compute_etag(b"hello world\n")
        response = await call(app, "/hello.txt", method="HEAD", headers={"If-None-Match": etag})
        assert response.status == 304

    @pytest.mark.asyncio
    async def test_not_found_passes_through(self, app: ETagMiddleware, call) -> None:
        response = await call(app, "/nope.txt")
        assert response.status == 404
        assert response.body == b"404 page not found\n"
        assert response.header("etag") is None

    @pytest.mark.asyncio
    async def test_not_found_head_has_no_body(self, app: ETagMiddleware, call) -> None:
        response = await call(app, "/nope.txt", method="HEAD")
        assert response.status == 404
        assert response.body == b""
        assert response.body_messages[-1].get("more_body", False) is False

    @pytest.mark.asyncio
    async def test_partial_content_passes_through(self, app: ETagMiddleware, call) -> None:
        response = await call(app, "/hello.txt", headers={"Range": "bytes=0-4"})
        assert response.status == 206
        assert response.body == b"hello"
        assert response.header("etag") is None

    @pytest.mark.asyncio
    async def test_chunks_buffered_into_one_message(self, call) -> None:
        inner = ChunkedApp([b"abc", b"def", b"ghi"])
        response = await call(ETagMiddleware(inner), "/")
        assert response.body == b"abcdefghi"
        assert len(response.body_messages) == 1
        assert response.header("etag") == compute_etag(b"abcdefghi")

    @pytest.mark.asyncio
    async def test_head_runs_inner_as_get(self, call) -> None:
        inner = ChunkedApp([b"abc"])
        await call(ETagMiddleware(inner), "/", method="HEAD")
        assert inner.methods == ["GET"]

    @pytest.mark.asyncio
    async def test_other_methods_pass_through(self, call) -> None:
        inner = ChunkedApp([b"abc"])
        response = await call(ETagMiddleware(inner), "/", method="POST")
        assert inner.methods == ["POST"]
        assert response.header("etag") is None
        assert response.body == b"abc"

    @pytest.mark.asyncio
    async def test_write_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        async def broken_send(message) -> None:
            raise ConnectionResetError("client went away")

        async def receive() -> dict:
            return {"type": "http.request", "body": b""}

        scope = {"type": "http", "method": "GET", "path": "/gone", "headers": []}
        with caplog.at_level(logging.WARNING, logger="staticserve.etag"):
            await ETagMiddleware(ChunkedApp([b"abc"]))(scope, receive, broken_send)
        assert "unable to write HTTP response for /gone" in caplog.text

    @pytest.mark.asyncio
    async def test_inner_exception_propagates(self, call) -> None:
        async def failing(scope, receive, send) -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await call(ETagMiddleware(failing), "/")
