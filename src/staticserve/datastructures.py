# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""
Case-insensitive HTTP headers and raw header list helpers.

Purpose
=======
Request headers arrive in the ASGI scope as ``list[tuple[bytes, bytes]]``.
``Headers`` gives a read-only, case-insensitive view over them so that layers
can look up ``If-None-Match`` or ``Range`` without touching the scope.

Response headers travel inside ``http.response.start`` messages in the same
raw form. Middleware that rewrite a response build a new list with the helper
functions below instead of mutating the list they were handed.

Example::

    headers = headers_from_scope(scope)
    headers.get("if-none-match")

    raw = set_header(message["headers"], "etag", '"abc"')
    raw = drop_headers(raw, "content-length", "content-type")

Design Notes
============
- Names are normalized to lowercase, values preserved as-is
- Latin-1 is used in both directions, as mandated by ASGI
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Iterator

__all__ = [
    "Headers",
    "headers_from_scope",
    "set_header",
    "add_header",
    "drop_headers",
]


class Headers:
    """
    Read-only, case-insensitive view over raw request headers.

    Repeated headers keep every value in arrival order; ``get`` returns the
    first one, which is what conditional and range handling need.

    Example:
        >>> headers = Headers([(b"If-None-Match", b'"abc"')])
        >>> headers.get("if-none-match")
        '"abc"'
        >>> "IF-NONE-MATCH" in headers
        True
    """

    __slots__ = ("_index",)

    def __init__(self, raw_headers: Iterable[tuple[bytes, bytes]]) -> None:
        self._index: dict[str, list[str]] = {}
        for name, value in raw_headers:
            self._index.setdefault(name.decode("latin-1").lower(), []).append(
                value.decode("latin-1")
            )

    def get(self, key: str, default: str | None = None) -> str | None:
        values = self._index.get(key.lower())
        return values[0] if values else default

    def getlist(self, key: str) -> list[str]:
        return list(self._index.get(key.lower(), ()))

    def items(self) -> list[tuple[str, str]]:
        """Every (name, value) pair, grouped by name."""
        return [(name, value) for name, values in self._index.items() for value in values]

    def __getitem__(self, key: str) -> str:
        try:
            return self._index[key.lower()][0]
        except KeyError:
            raise KeyError(key) from None

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"Headers({self.items()!r})"


def headers_from_scope(scope: Mapping[str, Any]) -> Headers:
    """
    Create a Headers view over the request headers of an ASGI scope.

    Args:
        scope: ASGI scope mapping. A missing "headers" key gives empty Headers.

    Returns:
        Headers instance.
    """
    return Headers(scope.get("headers", []))


def drop_headers(
    raw_headers: Iterable[tuple[bytes, bytes]], *names: str
) -> list[tuple[bytes, bytes]]:
    """Return a copy of ``raw_headers`` without any of ``names``."""
    keys = {name.lower().encode("latin-1") for name in names}
    return [(n, v) for n, v in raw_headers if n.lower() not in keys]


def set_header(
    raw_headers: Iterable[tuple[bytes, bytes]], name: str, value: str
) -> list[tuple[bytes, bytes]]:
    """Return a copy of ``raw_headers`` where ``name`` has the single value ``value``."""
    headers = drop_headers(raw_headers, name)
    headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
    return headers


def add_header(
    raw_headers: Iterable[tuple[bytes, bytes]], name: str, value: str
) -> list[tuple[bytes, bytes]]:
    """Return a copy of ``raw_headers`` with one more ``name: value`` entry."""
    headers = list(raw_headers)
    headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
    return headers
