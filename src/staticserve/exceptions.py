# Copyright 2025 Softwell S.r.l.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Exception classes for staticserve.

Error taxonomy
--------------
NotFound
    Missing files, directories hidden by the restricted filesystem and paths
    that try to leave the served root. The filesystem layer raises the
    builtin ``FileNotFoundError`` (or lets ``PermissionError`` /
    ``NotADirectoryError`` through); the file server turns all of them into
    the same generic 404.

TransportWriteFailure
    ASGI servers raise ``OSError`` from ``send`` once the client is gone.
    It is caught where the body is written, logged, and the request ends.
    No dedicated class is needed.

ListenerBindFailure
    ``ListenerBindError`` is raised when a listening socket cannot be bound.
    Fatal for the main listener, logged for the metrics listener.

ConfigError
    Invalid configuration value (e.g. a non-numeric ``PORT``).

HTTPException
-------------
Raise in handlers to return an HTTP error response.

Attributes:
    status_code (int): HTTP status code (expected 4xx or 5xx)
    detail (str): Error detail message (default: "")
    headers (list[tuple[str, str]] | None): Optional response headers.
        Input can be dict[str, str] or list[tuple[str, str]], stored as list.

Example:
    >>> raise HTTPException(405, detail="Method Not Allowed", headers={"Allow": "GET, HEAD"})
"""

from __future__ import annotations

__all__ = [
    "HTTPException",
    "ListenerBindError",
    "ConfigError",
]


class HTTPException(Exception):
    """
    HTTP error that the errors middleware renders as a plain-text response.

    Attributes:
        status_code: HTTP status code (4xx, 5xx; not validated)
        detail: Error message used as response body
        headers: Extra response headers as list of tuples, or None
    """

    def __init__(
        self,
        status_code: int,
        detail: str = "",
        headers: dict[str, str] | list[tuple[str, str]] | None = None,
    ) -> None:
        """
        Initialize HTTP exception.

        Args:
            status_code: HTTP status code
            detail: Error detail message (default: "")
            headers: Optional response headers (default: None)
        """
        self.status_code = status_code
        self.detail = detail
        if headers is None:
            self.headers: list[tuple[str, str]] | None = None
        elif isinstance(headers, dict):
            self.headers = list(headers.items())
        else:
            self.headers = list(headers)
        super().__init__(detail)

    def __repr__(self) -> str:
        """Return detailed string representation."""
        return f"HTTPException(status_code={self.status_code}, detail={self.detail!r})"


class ListenerBindError(OSError):
    """A listening socket could not be bound.

    Attributes:
        host: Interface the bind was attempted on.
        port: TCP port.
    """

    def __init__(self, host: str, port: int, reason: str = "") -> None:
        self.host = host
        self.port = port
        message = f"cannot listen on {host}:{port}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ConfigError(Exception):
    """Configuration error."""
