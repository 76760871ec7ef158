# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Prefix router - explicit mount table for ASGI applications.

A Router is constructed at startup and handed to the listener, there is no
process-wide routing table. Each mount strips its prefix from the request
path before calling the mounted application, the way the file server
expects it:

    router = Router()
    router.mount("/static", FileServer(fs))

    GET /static/css/site.css  ->  FileServer sees path "/css/site.css"
    GET /static               ->  301 to "static/"
    GET /other.txt            ->  404

The longest matching prefix wins. The scope handed downstream is a copy; the
stripped prefix is appended to its ``root_path`` as ASGI prescribes.
"""

from __future__ import annotations

import posixpath
from urllib.parse import quote

from .types import ASGIApp, Receive, Scope, Send

__all__ = ["Router", "normalize_prefix"]


def normalize_prefix(prefix: str) -> str:
    """Return ``prefix`` with a leading slash and no trailing slash ("" for the root)."""
    prefix = prefix.strip()
    if not prefix.startswith("/"):
        prefix = "/" + prefix
    return prefix.rstrip("/")


class Router:
    """Dispatch requests to the application mounted on the longest matching prefix."""

    __slots__ = ("_mounts",)

    def __init__(self) -> None:
        self._mounts: list[tuple[str, ASGIApp]] = []

    def mount(self, prefix: str, app: ASGIApp) -> None:
        """Mount ``app`` under ``prefix``.

        Raises:
            ValueError: If the prefix is already mounted.
        """
        prefix = normalize_prefix(prefix)
        if any(existing == prefix for existing, _ in self._mounts):
            raise ValueError(f"Prefix '{prefix or '/'}' already mounted")
        self._mounts.append((prefix, app))
        self._mounts.sort(key=lambda item: len(item[0]), reverse=True)

    @property
    def prefixes(self) -> list[str]:
        return [prefix or "/" for prefix, _ in self._mounts]

    def match(self, path: str) -> tuple[str, ASGIApp, str] | None:
        """Find the mount for ``path``.

        Returns:
            (prefix, app, remaining path) or None when no mount matches.
        """
        for prefix, app in self._mounts:
            if path == prefix or path.startswith(prefix + "/"):
                return prefix, app, path[len(prefix):]
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope.get("path") or "/"
        found = self.match(path)
        if found is None:
            await self._send_not_found(send)
            return

        prefix, app, rest = found
        if not rest:
            # "/base" must become "/base/" so relative links resolve below it
            query = scope.get("query_string", b"").decode("latin-1")
            location = quote(posixpath.basename(prefix)) + "/"
            if query:
                location = f"{location}?{query}"
            await send({
                "type": "http.response.start",
                "status": 301,
                "headers": [(b"location", location.encode("latin-1")), (b"content-length", b"0")],
            })
            await send({"type": "http.response.body", "body": b""})
            return

        child = dict(scope)
        child["path"] = rest
        child["root_path"] = scope.get("root_path", "") + prefix
        child.pop("raw_path", None)
        await app(child, receive, send)

    async def _send_not_found(self, send: Send) -> None:
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

    def __repr__(self) -> str:
        return f"Router(prefixes={self.prefixes!r})"
