# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Static Server - builds the request pipeline and runs the listeners.

StaticServer is the central coordinator that:
- Opens the served directory through a RestrictedFilesystem
- Mounts the FileServer on the base URI of an explicit Router
- Wraps the Router in the middleware chain selected by the configuration
- Handles the ASGI lifespan protocol
- Runs the main listener and, when enabled, the metrics listener (uvicorn)

Usage:
    from staticserve import StaticServer, ServerConfig

    server = StaticServer(ServerConfig(directory="./public", etag=True))
    server.run()

Request flow:
    uvicorn -> StaticServer.__call__
        -> metrics -> errors -> logging -> headers -> etag   (enabled ones)
        -> Router (strip base URI) -> FileServer
        -> RestrictedFilesystem -> RootedFilesystem

Listeners:
    The main socket is bound first; failing to bind it raises
    ListenerBindError. The metrics socket is bound next; failing to bind it
    is logged and the server keeps going without metrics. Both uvicorn
    servers run in the same event loop; when the main one stops the metrics
    one is told to exit.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Any

import uvicorn
from prometheus_client import CollectorRegistry, make_asgi_app

from .config import ServerConfig
from .exceptions import ListenerBindError
from .filesystem import RestrictedFilesystem, RootedFilesystem
from .middleware import enabled_middleware, middleware_chain
from .router import Router
from .static import FileServer
from .types import ASGIApp, Receive, Scope, Send

__all__ = ["StaticServer", "MetricsEndpoint", "bind_socket", "HOST", "METRICS_PATH"]

HOST = "0.0.0.0"
METRICS_PATH = "/metrics"


def bind_socket(host: str, port: int) -> socket.socket:
    """
    Create a TCP socket bound to ``host:port``, ready to be handed to uvicorn.

    Raises:
        ListenerBindError: If the address cannot be bound.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as e:
        sock.close()
        raise ListenerBindError(host, port, e.strerror or str(e)) from e
    sock.set_inheritable(True)
    return sock


class MetricsEndpoint:
    """ASGI app exposing a Prometheus registry at a single path, 404 elsewhere."""

    __slots__ = ("path", "exporter")

    def __init__(self, registry: CollectorRegistry, path: str = METRICS_PATH) -> None:
        self.path = path.rstrip("/")
        self.exporter = make_asgi_app(registry=registry)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return
        if scope.get("path", "/").rstrip("/") == self.path:
            await self.exporter(scope, receive, send)
            return
        body = b"404 page not found\n"
        await send({
            "type": "http.response.start",
            "status": 404,
            "headers": [
                (b"content-type", b"text/plain; charset=utf-8"),
                (b"content-length", str(len(body)).encode()),
            ],
        })
        await send({"type": "http.response.body", "body": body})


class StaticServer:
    """
    ASGI static file server.

    Attributes:
        config: ServerConfig the pipeline was built from.
        filesystem: RestrictedFilesystem over the served directory.
        router: Router with the FileServer mounted on the base URI.
        registry: Prometheus registry the metrics middleware records into.
        dispatcher: Entry point of the middleware chain.
        logger: Server logger instance.
    """

    __slots__ = ("config", "filesystem", "router", "registry", "dispatcher", "logger")

    def __init__(
        self,
        config: ServerConfig | None = None,
        registry: CollectorRegistry | None = None,
    ) -> None:
        """
        Build the request pipeline.

        Args:
            config: Resolved configuration. Default: all defaults.
            registry: Prometheus registry. Default: a registry owned by this server.
        """
        self.config = config or ServerConfig()
        self.logger = logging.getLogger("staticserve")
        self.filesystem = RestrictedFilesystem(
            RootedFilesystem(self.config.directory), dir_index=self.config.dir_index
        )
        self.router = Router()
        self.router.mount(self.config.base_uri, FileServer(self.filesystem))
        self.registry = registry if registry is not None else CollectorRegistry()
        self.dispatcher: ASGIApp = middleware_chain(
            self.config.middleware, self.router, options=self._middleware_options()
        )

    def _middleware_options(self) -> dict[str, dict[str, Any]]:
        """Keyword arguments for each middleware, taken from the configuration."""
        return {
            "metrics": {"registry": self.registry, "handler_id": self.config.base_uri},
            "headers": {
                "keep_alive": self.config.keep_alive,
                "cache_control": self.config.cache_control,
            },
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """
        Handle ASGI request.

        Args:
            scope: ASGI scope dict.
            receive: ASGI receive callable.
            send: ASGI send callable.
        """
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
        else:
            await self.dispatcher(scope, receive, send)

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        """Answer the ASGI lifespan protocol. Nothing to set up or tear down."""
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                self.logger.debug("Server started")
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                self.logger.debug("Server stopped")
                await send({"type": "lifespan.shutdown.complete"})
                return

    def metrics_app(self) -> ASGIApp:
        """ASGI app serving this server's registry at METRICS_PATH."""
        return MetricsEndpoint(self.registry)

    def _metrics_server(self) -> tuple[uvicorn.Server, socket.socket] | None:
        """Bind the metrics listener. A bind failure is logged, not raised."""
        try:
            sock = bind_socket(HOST, self.config.metrics_port)
        except ListenerBindError as e:
            self.logger.error(f"Metrics unavailable: {e}")
            return None
        config = uvicorn.Config(self.metrics_app(), lifespan="off", access_log=False)
        self.logger.info(f"Serving metrics at: :{self.config.metrics_port}{METRICS_PATH}")
        return uvicorn.Server(config), sock

    async def serve(self) -> None:
        """
        Run the main listener and, if enabled, the metrics listener until shutdown.

        Raises:
            ListenerBindError: If the main port cannot be bound.
        """
        main_sock = bind_socket(HOST, self.config.port)
        main_server = uvicorn.Server(uvicorn.Config(self, lifespan="on", access_log=False))

        metrics = self._metrics_server() if self.config.metrics else None

        self.logger.info(
            f"Serving {self.config.directory} directory with {self.config.base_uri} "
            f"basepath on HTTP port: {self.config.port}"
        )
        layers = ", ".join(cls.middleware_name for cls in enabled_middleware(self.config.middleware))
        self.logger.info(f"Middleware: {layers}")
        main_task = asyncio.create_task(main_server.serve(sockets=[main_sock]))
        metrics_task = None
        if metrics is not None:
            metrics_server, metrics_sock = metrics
            metrics_task = asyncio.create_task(metrics_server.serve(sockets=[metrics_sock]))
        try:
            await main_task
        finally:
            if metrics_task is not None:
                metrics_server.should_exit = True
                await metrics_task

    def run(self) -> None:
        """Run the server until interrupted."""
        asyncio.run(self.serve())

    def __repr__(self) -> str:
        """Return string representation."""
        return f"StaticServer(directory={self.config.directory!r}, base_uri={self.config.base_uri!r})"
