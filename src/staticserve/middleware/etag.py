# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""ETag Middleware - content fingerprints and conditional responses.

The ETag is the SHA-1 of the exact response body, so it changes exactly when
the bytes a client would receive change, whatever the file metadata says.

Because a header must precede the body, the whole body has to be known
before the ETag can be sent. The middleware therefore buffers: every body
chunk the inner application sends is written to a per-request buffer and
fed to the digest, and only when the inner application returns is anything
sent to the client:

- If-None-Match matches the fingerprint: 304 Not Modified, no body, no
  content headers.
- Otherwise: the original status and headers plus ``ETag``, then the
  buffered body in one message.

Rules:
    - Only GET and HEAD are handled, other methods pass through.
    - Only 200 responses are fingerprinted; other statuses (404, 206, 301,
      304 from If-Modified-Since) are forwarded unchanged.
    - HEAD is run downstream as GET so HEAD and GET report the same ETag;
      the body is dropped before sending.
    - If-None-Match accepts a comma separated list, ``*``, weak tags
      (``W/"..."``) and bare unquoted fingerprints.
    - A failed write to the client (``OSError``, e.g. disconnect) is logged
      and ends the request.

Empty bodies get the digest of the empty byte string:
``"da39a3ee5e6b4b0d3255bfef95601890afd80709"``.
"""

from __future__ import annotations

import hashlib
import io
import logging
from typing import TYPE_CHECKING, Any

from . import BaseMiddleware
from ..datastructures import drop_headers, headers_from_scope, set_header

if TYPE_CHECKING:
    from ..types import ASGIApp, Message, Receive, Scope, Send

__all__ = ["ETagMiddleware", "ConditionalResponseState", "compute_etag", "etag_matches"]

logger = logging.getLogger("staticserve.etag")

# headers describing a body, not sent with 304
CONTENT_HEADERS = ("content-type", "content-length", "content-range", "content-encoding")


def compute_etag(body: bytes) -> str:
    """Return the quoted strong ETag for ``body``."""
    return f'"{hashlib.sha1(body).hexdigest()}"'


def etag_matches(if_none_match: str | None, etag: str) -> bool:
    """Check an If-None-Match header against an ETag (weak comparison).

    Args:
        if_none_match: Raw header value, or None.
        etag: Quoted ETag of the current representation.

    Returns:
        True if any listed tag (or ``*``) matches.
    """
    if not if_none_match:
        return False
    opaque = etag.strip('"')
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate == "*":
            return True
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate.strip('"') == opaque:
            return True
    return False


class ConditionalResponseState:
    """Per-request capture of a response: start message, body buffer, digest.

    Owned by the coroutine handling one request. Use it as a context manager,
    the buffer is released on every exit path.
    """

    __slots__ = ("start", "passthrough", "buffer", "digest")

    def __init__(self) -> None:
        self.start: Message | None = None
        self.passthrough = False
        self.buffer = io.BytesIO()
        self.digest = hashlib.sha1()

    def write(self, chunk: bytes) -> None:
        self.buffer.write(chunk)
        self.digest.update(chunk)

    @property
    def etag(self) -> str:
        return f'"{self.digest.hexdigest()}"'

    @property
    def body(self) -> bytes:
        return self.buffer.getvalue()

    def close(self) -> None:
        self.buffer.close()

    def __enter__(self) -> ConditionalResponseState:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ETagMiddleware(BaseMiddleware):
    """Conditional-response middleware based on body fingerprints.

    Class Attributes:
        middleware_name: "etag" - identifier for config.
        middleware_order: 900 - innermost, it sees the file server's response
            before any other layer rewrites it.
        middleware_default: False - disabled by default.
    """

    middleware_name = "etag"
    middleware_order = 900
    middleware_default = False

    __slots__ = ()

    def __init__(self, app: ASGIApp, **kwargs: Any) -> None:
        super().__init__(app, **kwargs)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Run the inner app with a capturing send, then answer.

        Args:
            scope: ASGI scope dictionary.
            receive: ASGI receive callable.
            send: ASGI send callable.
        """
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        if method not in ("GET", "HEAD"):
            await self.app(scope, receive, send)
            return

        is_head = method == "HEAD"
        inner_scope = {**scope, "method": "GET"} if is_head else scope
        if_none_match = headers_from_scope(scope).get("if-none-match")

        with ConditionalResponseState() as state:

            async def capture(message: Message) -> None:
                if message["type"] == "http.response.start":
                    if message.get("status", 200) != 200:
                        state.passthrough = True
                        await send(message)
                    else:
                        state.start = message
                elif message["type"] == "http.response.body":
                    if not state.passthrough:
                        state.write(message.get("body", b""))
                    elif not is_head:
                        await send(message)
                    elif not message.get("more_body", False):
                        await send({"type": "http.response.body", "body": b""})
                else:
                    await send(message)

            await self.app(inner_scope, receive, capture)

            if state.start is None:
                return

            etag = state.etag
            try:
                if etag_matches(if_none_match, etag):
                    await self._send_not_modified(send, state.start, etag)
                else:
                    await self._send_buffered(
                        send, state.start, state.body if not is_head else b"", etag
                    )
            except OSError as e:
                logger.warning(f"unable to write HTTP response for {scope.get('path', '/')}: {e}")

    async def _send_not_modified(self, send: Send, start: Message, etag: str) -> None:
        """Send 304 with the original non-content headers and the ETag."""
        headers = drop_headers(start.get("headers", []), *CONTENT_HEADERS)
        headers = set_header(headers, "etag", etag)
        await send({"type": "http.response.start", "status": 304, "headers": headers})
        await send({"type": "http.response.body", "body": b""})

    async def _send_buffered(self, send: Send, start: Message, body: bytes, etag: str) -> None:
        """Send the captured start message with the ETag, then the buffered body."""
        headers = set_header(start.get("headers", []), "etag", etag)
        await send({**start, "headers": headers})
        await send({"type": "http.response.body", "body": body})
