# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Error handling middleware.

Catches exceptions raised during request processing and converts them
to HTTP responses that carry no internal detail.

Exception handling:
    - HTTPException: Returns status code with detail message
    - Exception: Logged with traceback, returns 500 Internal Server Error

If the response has already started when the exception surfaces, nothing
can be sent anymore: the exception is logged and re-raised so the ASGI
server drops the connection.

Note:
    Enabled by default (middleware_default=True), runs just inside the
    metrics layer (middleware_order=100) so metrics still see the 500.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from . import BaseMiddleware
from ..exceptions import HTTPException

if TYPE_CHECKING:
    from ..types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("staticserve.errors")


class ErrorMiddleware(BaseMiddleware):
    """Error handling middleware for HTTP requests.

    Class Attributes:
        middleware_name: "errors" - identifier for config.
        middleware_order: 100 - runs early to catch all errors.
        middleware_default: True - enabled by default.
    """

    middleware_name = "errors"
    middleware_order = 100
    middleware_default = True

    __slots__ = ()

    def __init__(self, app: ASGIApp, **kwargs: Any) -> None:
        super().__init__(app, **kwargs)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process request with error handling.

        Args:
            scope: ASGI scope dictionary.
            receive: ASGI receive callable.
            send: ASGI send callable.
        """
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_tracking)
        except HTTPException as e:
            if response_started:
                raise
            await self._send_http_error(send, e)
        except Exception:
            logger.exception("Unhandled error serving %s", scope.get("path", "/"))
            if response_started:
                raise
            await self._send_server_error(send)

    async def _send_http_error(self, send: Send, exc: HTTPException) -> None:
        """Answer with the status, headers and detail of an HTTPException."""
        extra = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in exc.headers or []
        ]
        await self._send_text(send, exc.status_code, (exc.detail or "").encode("utf-8"), extra)

    async def _send_server_error(self, send: Send) -> None:
        """Answer 500 with a body that carries no internal detail."""
        await self._send_text(send, 500, b"Internal Server Error")

    async def _send_text(
        self,
        send: Send,
        status: int,
        body: bytes,
        extra_headers: list[tuple[bytes, bytes]] | None = None,
    ) -> None:
        headers = [
            (b"content-type", b"text/plain; charset=utf-8"),
            (b"content-length", str(len(body)).encode()),
            *(extra_headers or []),
        ]
        await send({"type": "http.response.start", "status": status, "headers": headers})
        await send({"type": "http.response.body", "body": body})
