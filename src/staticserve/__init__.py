# Copyright 2025 Softwell S.r.l.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""staticserve - configurable static file server on ASGI.

Main components:
    StaticServer: builds the pipeline, runs uvicorn listeners
    ServerConfig: immutable configuration (flags > environment > defaults)
    FileServer: ASGI app streaming files and directory listings
    Router: explicit prefix router stripping the base URI

Filesystem:
    RootedFilesystem: directory-rooted accessor, cannot leave its root
    RestrictedFilesystem: hides directories unless listing is enabled

Middleware (outermost first):
    MetricsMiddleware: Prometheus request metrics
    ErrorMiddleware: exception to 500 conversion
    LoggingMiddleware: access logging
    HeadersMiddleware: Keep-Alive and Cache-Control injection
    ETagMiddleware: content fingerprints and 304 responses

Usage:
    from staticserve import StaticServer, resolve_config

    StaticServer(resolve_config(["-d", "./public", "-e"])).run()
"""

__version__ = "0.1.0"

from .config import ServerConfig, resolve_config
from .datastructures import Headers, headers_from_scope
from .exceptions import ConfigError, HTTPException, ListenerBindError
from .filesystem import FileHandle, FileSystem, RestrictedFilesystem, RootedFilesystem
from .middleware import (
    BaseMiddleware,
    ErrorMiddleware,
    ETagMiddleware,
    HeadersMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    middleware_chain,
)
from .router import Router
from .server import StaticServer
from .static import FileServer
from .types import ASGIApp, Message, Receive, Scope, Send

__all__ = [
    "__version__",
    "ServerConfig",
    "resolve_config",
    "Headers",
    "headers_from_scope",
    "ConfigError",
    "HTTPException",
    "ListenerBindError",
    "FileHandle",
    "FileSystem",
    "RestrictedFilesystem",
    "RootedFilesystem",
    "BaseMiddleware",
    "ErrorMiddleware",
    "ETagMiddleware",
    "HeadersMiddleware",
    "LoggingMiddleware",
    "MetricsMiddleware",
    "middleware_chain",
    "Router",
    "StaticServer",
    "FileServer",
    "ASGIApp",
    "Message",
    "Receive",
    "Scope",
    "Send",
]
