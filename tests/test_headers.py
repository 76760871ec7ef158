# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Tests for HeadersMiddleware."""

import pytest

from staticserve.middleware.headers import HeadersMiddleware


async def plain_app(scope, receive, send) -> None:
    await send({
        "type": "http.response.start",
        "status": 200,
        "headers": [(b"content-type", b"text/plain"), (b"content-length", b"2")],
    })
    await send({"type": "http.response.body", "body": b"ok"})


class TestHeadersMiddleware:
    """Keep-Alive and Cache-Control injection."""

    @pytest.mark.asyncio
    async def test_both_headers_in_order(self, call) -> None:
        app = HeadersMiddleware(plain_app, keep_alive="timeout=300", cache_control="max-age=2800")
        response = await call(app, "/")
        assert response.header("keep-alive") == "timeout=300"
        assert response.header("cache-control") == "max-age=2800"
        assert response.header_names == [
            b"content-type",
            b"content-length",
            b"keep-alive",
            b"cache-control",
        ]
        assert response.body == b"ok"

    @pytest.mark.asyncio
    async def test_cache_control_verbatim(self, call) -> None:
        app = HeadersMiddleware(plain_app, cache_control="public, max-age=60, immutable")
        response = await call(app, "/")
        assert response.header("cache-control") == "public, max-age=60, immutable"
        assert response.header("keep-alive") is None

    @pytest.mark.asyncio
    async def test_empty_values_skipped(self, call) -> None:
        app = HeadersMiddleware(plain_app, keep_alive="", cache_control=None)
        assert app.extra_headers == []
        response = await call(app, "/")
        assert response.header_names == [b"content-type", b"content-length"]

    @pytest.mark.asyncio
    async def test_error_responses_get_headers(self, call) -> None:
        async def not_found(scope, receive, send) -> None:
            await send({"type": "http.response.start", "status": 404, "headers": []})
            await send({"type": "http.response.body", "body": b""})

        response = await call(HeadersMiddleware(not_found, keep_alive="timeout=5"), "/")
        assert response.status == 404
        assert response.header("keep-alive") == "timeout=5"

    @pytest.mark.asyncio
    async def test_start_message_not_mutated(self, call) -> None:
        original = [(b"content-type", b"text/plain")]

        async def app_with_shared_headers(scope, receive, send) -> None:
            await send({"type": "http.response.start", "status": 200, "headers": original})
            await send({"type": "http.response.body", "body": b""})

        await call(HeadersMiddleware(app_with_shared_headers, cache_control="no-cache"), "/")
        assert original == [(b"content-type", b"text/plain")]
