# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""ASGI type definitions for staticserve.

Every layer of the request pipeline is an ASGI application: the file server,
the router and each middleware share the ``ASGIApp`` signature, which is what
lets them be stacked in any order at startup.

Type Definitions
================
Scope : MutableMapping[str, Any]
    Connection metadata (type, method, path, query_string, headers, client).
    Layers read it and never change it in place; the router hands a copied
    scope to the mounted application.

Message : MutableMapping[str, Any]
    One ASGI event. The pipeline mostly deals with ``http.response.start``
    (status and headers) and ``http.response.body`` (body chunk plus the
    ``more_body`` flag).

Receive : Callable[[], Awaitable[Message]]
    Pulls the next inbound event.

Send : Callable[[Message], Awaitable[None]]
    Pushes an outbound event. Middleware intercept responses by handing a
    wrapped ``send`` to the next layer.

ASGIApp : Callable[[Scope, Receive, Send], Awaitable[None]]
    The application callable.

RawHeaders : list[tuple[bytes, bytes]]
    Header list as carried by ``http.response.start`` messages.

References
==========
- ASGI Specification: https://asgi.readthedocs.io/en/latest/specs/main.html
- ASGI HTTP Spec: https://asgi.readthedocs.io/en/latest/specs/www.html
"""

from typing import Any, Awaitable, Callable, MutableMapping

__all__ = ["Scope", "Message", "Receive", "Send", "ASGIApp", "RawHeaders"]

# ASGI Scope - connection metadata
Scope = MutableMapping[str, Any]

# ASGI Message - sent/received data
Message = MutableMapping[str, Any]

# ASGI Receive - callable to receive messages
Receive = Callable[[], Awaitable[Message]]

# ASGI Send - callable to send messages
Send = Callable[[Message], Awaitable[None]]

# ASGI Application - the main callable
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]

# Response headers as found in http.response.start
RawHeaders = list[tuple[bytes, bytes]]
