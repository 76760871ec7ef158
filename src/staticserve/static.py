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

"""
Static file serving ASGI application.

FileServer is the innermost application of the pipeline. It receives a path
that already has the base URI stripped (see Router), opens it through a
FileSystem and streams the result.

Features:
- GET and HEAD only (405 otherwise)
- Content-Type detection via mimetypes
- Last-Modified and If-Modified-Since (304)
- Single byte range requests (206 / 416)
- Directory handling: redirect to the slashed URL, serve index.html
  (requests naming index.html are redirected to the directory),
  or render a listing of the immediate children
- Every open failure answers the same generic 404, whatever the cause

Constructor:
    FileServer(fs, index="index.html")

    - fs: FileSystem to read from (RootedFilesystem, RestrictedFilesystem)
    - index: File served for directory requests when present
"""

from __future__ import annotations

import html
import mimetypes
import posixpath
from email.utils import formatdate, parsedate_to_datetime
from urllib.parse import quote

from .datastructures import Headers, headers_from_scope
from .filesystem import FileHandle, FileSystem
from .types import RawHeaders, Receive, Scope, Send

__all__ = ["FileServer", "parse_byte_range", "RangeNotSatisfiable"]

# Ensure common types are registered
mimetypes.add_type("application/javascript", ".js")
mimetypes.add_type("text/css", ".css")
mimetypes.add_type("image/svg+xml", ".svg")
mimetypes.add_type("application/json", ".json")
mimetypes.add_type("text/html", ".html")
mimetypes.add_type("text/html", ".htm")
mimetypes.add_type("application/wasm", ".wasm")

NOT_FOUND_BODY = b"404 page not found\n"


class RangeNotSatisfiable(ValueError):
    """The requested byte range lies outside the file."""


def parse_byte_range(value: str, size: int) -> tuple[int, int] | None:
    """
    Parse a ``Range`` header holding a single byte range.

    Args:
        value: Raw header value, e.g. ``bytes=0-99``, ``bytes=100-``, ``bytes=-50``.
        size: Size of the file in bytes.

    Returns:
        (start, end) inclusive offsets, or None when the header should be
        ignored (not a bytes range, several ranges, malformed).

    Raises:
        RangeNotSatisfiable: If the range starts past the end of the file.
    """
    unit, _, ranges = value.partition("=")
    if unit.strip().lower() != "bytes" or "," in ranges:
        return None
    first, sep, last = ranges.strip().partition("-")
    if not sep:
        return None
    first, last = first.strip(), last.strip()
    try:
        if not first:
            # suffix range: the last N bytes
            suffix = int(last)
            if suffix <= 0:
                raise RangeNotSatisfiable(value)
            return max(size - suffix, 0), size - 1
        start = int(first)
        end = int(last) if last else size - 1
    except ValueError:
        return None
    if start >= size:
        raise RangeNotSatisfiable(value)
    if start < 0 or end < start:
        return None
    return start, min(end, size - 1)


class FileServer:
    """
    ASGI application serving files from a FileSystem.

    Example:
        fs = RestrictedFilesystem(RootedFilesystem("./public"))
        app = FileServer(fs)
    """

    __slots__ = ("fs", "index")

    def __init__(self, fs: FileSystem, index: str = "index.html") -> None:
        """
        Initialize the file server.

        Args:
            fs: Filesystem the URL paths are resolved against.
            index: File served for directory requests when it exists.
        """
        self.fs = fs
        self.index = index

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """
        Handle ASGI request.

        Args:
            scope: ASGI scope dict.
            receive: ASGI receive callable.
            send: ASGI send callable.
        """
        if scope["type"] != "http":
            return

        method = scope.get("method", "GET")
        if method not in ("GET", "HEAD"):
            await self._send_error(
                send, 405, b"405 method not allowed\n", [(b"allow", b"GET, HEAD")]
            )
            return

        path = scope.get("path") or "/"
        if not path.startswith("/"):
            path = "/" + path
        query = scope.get("query_string", b"").decode("latin-1")
        include_body = method == "GET"

        # the index file is only reachable through its directory URL
        if path.endswith("/" + self.index):
            await self._redirect(send, "./", query)
            return

        try:
            handle = self.fs.open(path)
        except (OSError, ValueError):
            await self._send_error(send, 404, NOT_FOUND_BODY)
            return

        with handle:
            if handle.is_dir:
                if not path.endswith("/"):
                    await self._redirect(send, quote(posixpath.basename(path)) + "/", query)
                    return
                index = self._open_index(path)
                if index is None:
                    await self._send_listing(send, handle, include_body)
                    return
                with index:
                    await self._send_file(send, index, headers_from_scope(scope), include_body)
                return

            if path.endswith("/"):
                await self._redirect(send, "../" + quote(posixpath.basename(path.rstrip("/"))), query)
                return
            await self._send_file(send, handle, headers_from_scope(scope), include_body)

    def _open_index(self, path: str) -> FileHandle | None:
        """Open the index file of a directory, None if absent or not a file."""
        try:
            handle = self.fs.open(path + self.index)
        except (OSError, ValueError):
            return None
        if handle.is_dir:
            handle.close()
            return None
        return handle

    async def _send_file(
        self,
        send: Send,
        handle: FileHandle,
        request_headers: Headers,
        include_body: bool = True,
    ) -> None:
        """
        Send file as HTTP response, honoring If-Modified-Since and Range.

        Args:
            send: ASGI send callable.
            handle: Opened regular file.
            request_headers: Request headers.
            include_body: Include body (False for HEAD requests).
        """
        size = handle.size
        last_modified = formatdate(int(handle.mtime), usegmt=True).encode("latin-1")

        if self._not_modified(request_headers, handle.mtime):
            await send({
                "type": "http.response.start",
                "status": 304,
                "headers": [(b"last-modified", last_modified)],
            })
            await send({"type": "http.response.body", "body": b""})
            return

        headers: RawHeaders = [
            (b"content-type", self._get_content_type(handle.name).encode("latin-1")),
            (b"last-modified", last_modified),
            (b"accept-ranges", b"bytes"),
        ]
        status = 200
        start, length = 0, size

        range_header = request_headers.get("range")
        if range_header and size > 0:
            try:
                byte_range = parse_byte_range(range_header, size)
            except RangeNotSatisfiable:
                await self._send_error(
                    send, 416, b"416 requested range not satisfiable\n",
                    [(b"content-range", f"bytes */{size}".encode())],
                )
                return
            if byte_range is not None:
                start, end = byte_range
                length = end - start + 1
                status = 206
                headers.append((b"content-range", f"bytes {start}-{end}/{size}".encode()))

        headers.append((b"content-length", str(length).encode()))
        await send({"type": "http.response.start", "status": status, "headers": headers})

        if not include_body or length == 0:
            await send({"type": "http.response.body", "body": b""})
            return

        for chunk in handle.read_chunks(start, length):
            await send({"type": "http.response.body", "body": chunk, "more_body": True})
        await send({"type": "http.response.body", "body": b""})

    async def _send_listing(self, send: Send, handle: FileHandle, include_body: bool = True) -> None:
        """Send an HTML list of the directory's immediate children."""
        lines = [
            "<!doctype html>",
            '<meta name="viewport" content="width=device-width">',
            "<pre>",
        ]
        for entry in handle.children():
            name = entry.name + "/" if entry.is_dir else entry.name
            lines.append(f'<a href="{html.escape(quote(name))}">{html.escape(name)}</a>')
        lines.append("</pre>")
        body = ("\n".join(lines) + "\n").encode("utf-8")

        await send({
            "type": "http.response.start",
            "status": 200,
            "headers": [
                (b"content-type", b"text/html; charset=utf-8"),
                (b"content-length", str(len(body)).encode()),
            ],
        })
        await send({"type": "http.response.body", "body": body if include_body else b""})

    async def _redirect(self, send: Send, location: str, query: str = "") -> None:
        """Send a 301 to a location relative to the current URL."""
        if query:
            location = f"{location}?{query}"
        await send({
            "type": "http.response.start",
            "status": 301,
            "headers": [(b"location", location.encode("latin-1")), (b"content-length", b"0")],
        })
        await send({"type": "http.response.body", "body": b""})

    async def _send_error(
        self,
        send: Send,
        status: int,
        body: bytes,
        extra_headers: RawHeaders | None = None,
    ) -> None:
        """
        Send a plain-text error response.

        Args:
            send: ASGI send callable.
            status: HTTP status code.
            body: Response body; never carries internal detail.
            extra_headers: Additional headers.
        """
        headers: RawHeaders = [
            (b"content-type", b"text/plain; charset=utf-8"),
            (b"content-length", str(len(body)).encode()),
        ]
        if extra_headers:
            headers.extend(extra_headers)
        await send({"type": "http.response.start", "status": status, "headers": headers})
        await send({"type": "http.response.body", "body": body})

    def _not_modified(self, request_headers: Headers, mtime: float) -> bool:
        """True if If-Modified-Since shows the client copy is current.

        If-None-Match takes precedence when present, so the date is not checked then.
        """
        if "if-none-match" in request_headers:
            return False
        if_modified_since = request_headers.get("if-modified-since")
        if not if_modified_since or mtime <= 0:
            return False
        try:
            client_time = parsedate_to_datetime(if_modified_since).timestamp()
        except (ValueError, TypeError):
            return False
        return int(mtime) <= client_time

    def _get_content_type(self, name: str) -> str:
        """
        Get content type for a file name.

        Returns:
            MIME type string, with charset for text types.
        """
        content_type, _ = mimetypes.guess_type(name)
        if content_type is None:
            content_type = "application/octet-stream"

        if content_type.startswith("text/") or content_type == "application/javascript":
            content_type = f"{content_type}; charset=utf-8"

        return content_type

    def __repr__(self) -> str:
        """Return string representation."""
        return f"FileServer(fs={self.fs!r}, index={self.index!r})"
