# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Metrics Middleware - Prometheus request instrumentation.

Wraps the whole chain and observes every HTTP request. The response is
never touched: messages are forwarded as they are, only their status and
body sizes are read.

Metrics (prometheus_client, in the given CollectorRegistry):
    http_requests_total{handler, method, code}               counter
    http_request_duration_seconds{handler, method, code}     histogram
    http_response_size_bytes{handler, method, code}          histogram
    http_requests_inflight{handler}                          gauge

``handler`` is a fixed identifier for the instrumented application, the
server uses its base URI, so the label set stays bounded whatever paths
clients ask for.

The registry is exported by a separate listener (see StaticServer), this
middleware only records.

Options:
    registry (CollectorRegistry): Registry to record into. Default: a new one.
    handler_id (str): Value of the ``handler`` label. Default: "/".
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from . import BaseMiddleware

if TYPE_CHECKING:
    from ..types import ASGIApp, Message, Receive, Scope, Send

# 100B .. 1GB
SIZE_BUCKETS = tuple(100.0 * 10**i for i in range(8))


class MetricsMiddleware(BaseMiddleware):
    """Record request count, latency, response size and in-flight requests.

    Class Attributes:
        middleware_name: "metrics" - identifier for config.
        middleware_order: 50 - outermost, the measure covers every other layer.
        middleware_default: False - disabled by default.
    """

    middleware_name = "metrics"
    middleware_order = 50
    middleware_default = False

    __slots__ = ("registry", "handler_id", "requests", "duration", "response_size", "inflight")

    def __init__(
        self,
        app: ASGIApp,
        registry: CollectorRegistry | None = None,
        handler_id: str = "/",
        **kwargs: Any,
    ) -> None:
        """Initialize metrics middleware and register its collectors.

        Args:
            app: Next ASGI application in the middleware chain.
            registry: Registry the collectors are registered in.
            handler_id: Value of the ``handler`` label.
            **kwargs: Additional arguments passed to BaseMiddleware.
        """
        super().__init__(app, **kwargs)
        self.registry = registry if registry is not None else CollectorRegistry()
        self.handler_id = handler_id
        labels = ["handler", "method", "code"]
        self.requests = Counter(
            "http_requests", "Total number of HTTP requests.", labels, registry=self.registry
        )
        self.duration = Histogram(
            "http_request_duration_seconds",
            "The latency of the HTTP requests.",
            labels,
            registry=self.registry,
        )
        self.response_size = Histogram(
            "http_response_size_bytes",
            "The size of the HTTP responses.",
            labels,
            buckets=SIZE_BUCKETS,
            registry=self.registry,
        )
        self.inflight = Gauge(
            "http_requests_inflight",
            "The number of inflight requests being handled at the same time.",
            ["handler"],
            registry=self.registry,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        status_code = 0
        size = 0

        async def send_observed(message: Message) -> None:
            nonlocal status_code, size
            if message["type"] == "http.response.start":
                status_code = message.get("status", 200)
            elif message["type"] == "http.response.body":
                size += len(message.get("body", b""))
            await send(message)

        inflight = self.inflight.labels(self.handler_id)
        inflight.inc()
        start_time = time.perf_counter()
        try:
            await self.app(scope, receive, send_observed)
        finally:
            duration = time.perf_counter() - start_time
            inflight.dec()
            # no start message means the chain raised
            code = str(status_code or 500)
            self.requests.labels(self.handler_id, method, code).inc()
            self.duration.labels(self.handler_id, method, code).observe(duration)
            self.response_size.labels(self.handler_id, method, code).observe(size)
