# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Logging Middleware - access log of the static server.

Two lines per request on the ``staticserve.access`` logger. The first is
written before the request goes down the chain, so a request that hangs or
crashes the process is still on record. The second is written when the
chain returns, with the status and body size the client received and the
time spent:

    <- GET /static/app.js?v=2 from 192.168.1.1
    -> GET /static/app.js?v=2 200 5120B (1.5ms)
    -> GET /static/app.js?v=2 ERROR: <exception> (1.5ms)

A failing log handler is dealt with by ``logging`` itself
(``Handler.handleError``) and never reaches the request.

Options:
    logger_name (str): Logger name. Default: "staticserve.access".
    level (str): Level of the access lines. Default: "INFO".
    include_headers (bool): Also log request headers at DEBUG. Default: False.
    include_query (bool): Append the query string to the path. Default: True.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from . import BaseMiddleware

if TYPE_CHECKING:
    from ..types import ASGIApp, Message, Receive, Scope, Send


class LoggingMiddleware(BaseMiddleware):
    """Access log layer.

    Class Attributes:
        middleware_name: "logging" - identifier for config.
        middleware_order: 200 - outside the header and etag layers, so the
            logged status is the one the client gets.
        middleware_default: False - enabled by the ``log`` option.
    """

    middleware_name = "logging"
    middleware_order = 200
    middleware_default = False

    __slots__ = ("logger", "level", "include_headers", "include_query")

    def __init__(
        self,
        app: ASGIApp,
        logger_name: str = "staticserve.access",
        level: str = "INFO",
        include_headers: bool = False,
        include_query: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(app, **kwargs)
        self.logger = logging.getLogger(logger_name)
        self.level: int = logging.getLevelName(level.upper())
        if not isinstance(self.level, int):
            self.level = logging.INFO
        self.include_headers = include_headers
        self.include_query = include_query

    def _request_line(self, scope: Scope) -> str:
        """``METHOD path[?query]`` as used in both log lines."""
        line = f"{scope.get('method', '?')} {scope.get('path', '/')}"
        query = scope.get("query_string", b"")
        if self.include_query and query:
            line = f"{line}?{query.decode('latin-1')}"
        return line

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_line = self._request_line(scope)
        client = scope.get("client")
        self.logger.log(self.level, f"<- {request_line} from {client[0] if client else 'unknown'}")
        if self.include_headers:
            headers = [
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in scope.get("headers", [])
            ]
            self.logger.debug(f"   Headers: {dict(headers)}")

        status = 0
        sent = 0

        async def send_counted(message: Message) -> None:
            nonlocal status, sent
            if message["type"] == "http.response.start":
                status = message.get("status", 0)
            elif message["type"] == "http.response.body":
                sent += len(message.get("body", b""))
            await send(message)

        started = time.perf_counter()
        try:
            await self.app(scope, receive, send_counted)
        except Exception as e:
            elapsed = (time.perf_counter() - started) * 1000
            self.logger.error(f"-> {request_line} ERROR: {e} ({elapsed:.1f}ms)")
            raise
        elapsed = (time.perf_counter() - started) * 1000
        self.logger.log(self.level, f"-> {request_line} {status} {sent}B ({elapsed:.1f}ms)")
