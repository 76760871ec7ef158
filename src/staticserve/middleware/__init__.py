# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Middleware package - the interceptor layers of the request pipeline.

Every layer is a BaseMiddleware subclass living in a module of this package.
Subclasses register themselves by name when their module is imported, and
all modules are imported when the package is, so the registry is complete
before any chain is built.

A chain is assembled once at startup from on/off switches:

    app = middleware_chain({"etag": True, "logging": True}, router)

Layers are sorted by ``middleware_order``, lowest outermost:

    50   metrics   sees every request and the final status
    100  errors    turns exceptions into 500 (on by default)
    200  logging   access log
    800  headers   Keep-Alive / Cache-Control
    900  etag      buffers and fingerprints the file server's response
"""

from __future__ import annotations

import importlib
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from ..types import ASGIApp, Receive, Scope, Send

MIDDLEWARE_REGISTRY: dict[str, type["BaseMiddleware"]] = {}

MiddlewareConfig = Union[str, list[str], Mapping[str, Any]]


class BaseMiddleware(ABC):
    """Base class for all middleware. Subclasses auto-register via __init_subclass__.

    Class attributes:
        middleware_name: Registry key (default: class name).
        middleware_order: Position in the chain, lower is outermost.
        middleware_default: State when the config does not mention the layer.
    """

    middleware_name: str = ""
    middleware_order: int = 500
    middleware_default: bool = False

    __slots__ = ("app",)

    def __init__(self, app: ASGIApp, **kwargs: Any) -> None:
        """Wrap the next application of the chain.

        Args:
            app: The ASGI app to wrap.
            **kwargs: Layer options, see each subclass.
        """
        self.app = app

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        name = cls.middleware_name or cls.__name__
        if name in MIDDLEWARE_REGISTRY:
            raise ValueError(f"Middleware name '{name}' already registered")
        cls.middleware_name = name
        MIDDLEWARE_REGISTRY[name] = cls

    @abstractmethod
    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None: ...


def _load_modules() -> None:
    """Import every middleware module so its classes register."""
    for source in sorted(Path(__file__).parent.glob("*.py")):
        if not source.name.startswith("_"):
            importlib.import_module(f".{source.stem}", __package__)


def _switches(middleware_config: MiddlewareConfig | None) -> dict[str, bool]:
    """Normalize a middleware config to {name: enabled}.

    Accepts a comma separated string or a list (every name enabled), or a
    mapping of name to on/off value.
    """
    if not middleware_config:
        return {}
    if isinstance(middleware_config, str):
        names = [name.strip() for name in middleware_config.split(",")]
        return {name: True for name in names if name}
    if isinstance(middleware_config, Mapping):
        return {name: _parse_enabled(value) for name, value in middleware_config.items()}
    return {name: True for name in middleware_config}


def enabled_middleware(middleware_config: MiddlewareConfig | None) -> list[type[BaseMiddleware]]:
    """
    Resolve which layers a config turns on, outermost first.

    Raises:
        ValueError: If the config names an unknown middleware.
    """
    switches = _switches(middleware_config)
    unknown = sorted(set(switches) - set(MIDDLEWARE_REGISTRY))
    if unknown:
        raise ValueError(f"Unknown middleware: {', '.join(unknown)}")
    selected = [
        cls
        for name, cls in MIDDLEWARE_REGISTRY.items()
        if switches.get(name, cls.middleware_default)
    ]
    return sorted(selected, key=lambda cls: cls.middleware_order)


def middleware_chain(
    middleware_config: MiddlewareConfig | None,
    app: ASGIApp,
    options: Mapping[str, Mapping[str, Any]] | None = None,
) -> ASGIApp:
    """Wrap ``app`` in the layers selected by ``middleware_config``.

    Example::

        app = middleware_chain(
            {"logging": True, "etag": True},
            router,
            options={"logging": {"level": "DEBUG"}},
        )

    Args:
        middleware_config: Dict {name: on/off}, comma-separated string, or list.
        app: The innermost ASGI app (the Router).
        options: Keyword arguments for each layer, keyed by middleware name.

    Returns:
        The outermost layer, or ``app`` itself when nothing is enabled.

    Raises:
        ValueError: If the config names an unknown middleware.
    """
    options = options or {}
    for cls in reversed(enabled_middleware(middleware_config)):
        app = cls(app, **dict(options.get(cls.middleware_name) or {}))
    return app


def _parse_enabled(value: Any) -> bool:
    """Parse on/off/true/false value to bool."""
    if isinstance(value, str):
        return value.strip().lower() in ("on", "true", "yes", "1")
    return bool(value)


_load_modules()
# export by class name; registry names would shadow the submodules
_EXPORTS = {cls.__name__: cls for cls in MIDDLEWARE_REGISTRY.values()}
globals().update(_EXPORTS)

__all__ = [
    "BaseMiddleware",
    "MIDDLEWARE_REGISTRY",
    "enabled_middleware",
    "middleware_chain",
    *_EXPORTS.keys(),
]
