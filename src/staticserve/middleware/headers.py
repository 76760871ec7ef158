# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Headers Middleware - static response headers.

Adds ``Keep-Alive`` and ``Cache-Control`` to every HTTP response, in that
order, after the headers the inner layers produced. Empty or missing values
are skipped. The Cache-Control value is used verbatim.

Options:
    keep_alive (str): Keep-Alive header value, e.g. "timeout=300".
    cache_control (str): Cache-Control header value, e.g. "max-age=2800".
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from . import BaseMiddleware
from ..datastructures import add_header

if TYPE_CHECKING:
    from ..types import ASGIApp, Message, Receive, Scope, Send


class HeadersMiddleware(BaseMiddleware):
    """Inject configured headers into every response start message.

    Class Attributes:
        middleware_name: "headers" - identifier for config.
        middleware_order: 800 - outside the etag layer so 304 responses
            carry the headers too.
        middleware_default: False - enabled when a value is configured.
    """

    middleware_name = "headers"
    middleware_order = 800
    middleware_default = False

    __slots__ = ("extra_headers",)

    def __init__(
        self,
        app: ASGIApp,
        keep_alive: str | None = None,
        cache_control: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(app, **kwargs)
        self.extra_headers: list[tuple[str, str]] = []
        if keep_alive:
            self.extra_headers.append(("keep-alive", keep_alive))
        if cache_control:
            self.extra_headers.append(("cache-control", cache_control))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.extra_headers:
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = message.get("headers", [])
                for name, value in self.extra_headers:
                    headers = add_header(headers, name, value)
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_with_headers)
