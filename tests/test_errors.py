# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Tests for ErrorMiddleware and the exception classes."""

import logging

import pytest

from staticserve.exceptions import HTTPException, ListenerBindError
from staticserve.middleware.errors import ErrorMiddleware


class TestExceptions:
    def test_http_exception_headers_from_dict(self) -> None:
        exc = HTTPException(405, "nope", headers={"Allow": "GET"})
        assert exc.status_code == 405
        assert exc.detail == "nope"
        assert exc.headers == [("Allow", "GET")]

    def test_listener_bind_error(self) -> None:
        exc = ListenerBindError("0.0.0.0", 8100, "Address already in use")
        assert isinstance(exc, OSError)
        assert exc.port == 8100
        assert str(exc) == "cannot listen on 0.0.0.0:8100: Address already in use"


class TestErrorMiddleware:
    """Exceptions turned into responses."""

    @pytest.mark.asyncio
    async def test_success_untouched(self, call) -> None:
        async def ok(scope, receive, send) -> None:
            await send({"type": "http.response.start", "status": 200, "headers": []})
            await send({"type": "http.response.body", "body": b"fine"})

        response = await call(ErrorMiddleware(ok), "/")
        assert response.status == 200
        assert response.body == b"fine"

    @pytest.mark.asyncio
    async def test_unhandled_error_is_500(self, call, caplog: pytest.LogCaptureFixture) -> None:
        async def failing(scope, receive, send) -> None:
            raise RuntimeError("secret internals")

        with caplog.at_level(logging.ERROR, logger="staticserve.errors"):
            response = await call(ErrorMiddleware(failing), "/boom")
        assert response.status == 500
        assert response.body == b"Internal Server Error"
        assert b"secret" not in response.body
        assert "Unhandled error serving /boom" in caplog.text

    @pytest.mark.asyncio
    async def test_http_exception(self, call) -> None:
        async def raising(scope, receive, send) -> None:
            raise HTTPException(404, "404 page not found")

        response = await call(ErrorMiddleware(raising), "/")
        assert response.status == 404
        assert response.body == b"404 page not found"

    @pytest.mark.asyncio
    async def test_http_exception_headers(self, call) -> None:
        async def raising(scope, receive, send) -> None:
            raise HTTPException(405, "no", headers={"Allow": "GET, HEAD"})

        response = await call(ErrorMiddleware(raising), "/")
        assert response.status == 405
        assert response.header("allow") == "GET, HEAD"

    @pytest.mark.asyncio
    async def test_reraise_after_response_started(self, call) -> None:
        async def half_sent(scope, receive, send) -> None:
            await send({"type": "http.response.start", "status": 200, "headers": []})
            raise RuntimeError("mid-body")

        with pytest.raises(RuntimeError):
            await call(ErrorMiddleware(half_sent), "/")
