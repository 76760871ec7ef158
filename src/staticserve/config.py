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
Server configuration for staticserve.

Every option has a command line flag, an environment variable and a default.
Sources are layered with genro-toolbox SmartOptions, later ones winning:

    hardcoded defaults < environment variables < command line flags

Options:
    ========== ======================== ============== =========
    field      flag                     env var        default
    ========== ======================== ============== =========
    port       -p, --port               PORT           8100
    directory  -d, --directory          DIRECTORY      .
    base_uri   -b, --base-uri           BASE_URI       /
    keep_alive -k, --keep-alive         KEEPALIVE      (empty)
    cache_ctl  -c, --cache-control      CACHECONTROL   (empty)
    etag       -e, --etag               ETAG           off
    dir_index  -i, --dir-index          DIRINDEX       off
    log        -l, --log                LOG            off
    metrics    -m, --metrics            METRICS        off
    metr_port  -mp, --metrics-port      METRICS_PORT   9090
    ========== ======================== ============== =========

Empty environment values are ignored. A boolean environment variable turns
its option on when set to anything but 0/false/off/no. Boolean flags work
bare (``-e``) or with a value (``-e=false``).

The Cache-Control value is sent verbatim (e.g. ``-c "max-age=2800"``).
"""

from __future__ import annotations

import argparse
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from genro_toolbox import SmartOptions  # type: ignore[import-untyped]

from .exceptions import ConfigError

__all__ = ["ServerConfig", "resolve_config", "build_parser", "DEFAULTS", "ENV_VARS"]

DEFAULTS: dict[str, Any] = {
    "port": 8100,
    "directory": ".",
    "base_uri": "/",
    "keep_alive": "",
    "cache_control": "",
    "etag": False,
    "dir_index": False,
    "log": False,
    "metrics": False,
    "metrics_port": 9090,
}

ENV_VARS: dict[str, str] = {
    "port": "PORT",
    "directory": "DIRECTORY",
    "base_uri": "BASE_URI",
    "keep_alive": "KEEPALIVE",
    "cache_control": "CACHECONTROL",
    "etag": "ETAG",
    "dir_index": "DIRINDEX",
    "log": "LOG",
    "metrics": "METRICS",
    "metrics_port": "METRICS_PORT",
}

_INT_OPTIONS = ("port", "metrics_port")
_BOOL_OPTIONS = ("etag", "dir_index", "log", "metrics")
_FALSE_VALUES = ("0", "false", "off", "no")


@dataclass(frozen=True)
class ServerConfig:
    """Resolved server configuration, immutable for the process lifetime.

    Attributes:
        port: Main listener port.
        directory: Root directory served.
        base_uri: URL prefix stripped before file lookup.
        keep_alive: ``Keep-Alive`` header value, None when not configured.
        cache_control: ``Cache-Control`` header value, None when not configured.
        etag: Enables the conditional-response (ETag) layer.
        dir_index: Enables directory listings.
        log: Enables request logging.
        metrics: Enables the metrics layer and its listener.
        metrics_port: Metrics listener port.
    """

    port: int = DEFAULTS["port"]
    directory: str = DEFAULTS["directory"]
    base_uri: str = DEFAULTS["base_uri"]
    keep_alive: str | None = None
    cache_control: str | None = None
    etag: bool = False
    dir_index: bool = False
    log: bool = False
    metrics: bool = False
    metrics_port: int = DEFAULTS["metrics_port"]

    @classmethod
    def from_options(cls, opts: Any) -> ServerConfig:
        """Build a ServerConfig from merged SmartOptions (or any mapping)."""
        return cls(
            port=int(opts["port"]),
            directory=str(opts["directory"]),
            base_uri=str(opts["base_uri"]),
            keep_alive=opts["keep_alive"] or None,
            cache_control=opts["cache_control"] or None,
            etag=bool(opts["etag"]),
            dir_index=bool(opts["dir_index"]),
            log=bool(opts["log"]),
            metrics=bool(opts["metrics"]),
            metrics_port=int(opts["metrics_port"]),
        )

    @property
    def middleware(self) -> dict[str, bool]:
        """Middleware on/off switches, keyed by middleware name."""
        return {
            "metrics": self.metrics,
            "logging": self.log,
            "headers": bool(self.keep_alive or self.cache_control),
            "etag": self.etag,
        }


def _flag_bool(value: str) -> bool:
    """argparse type for boolean flags given with an explicit value."""
    lowered = value.strip().lower()
    if lowered in ("1", "true", "on", "yes"):
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    """Return the command line parser. Every default is None so unset flags can be told apart."""
    parser = argparse.ArgumentParser(
        prog="staticserve",
        description="Serve a directory of static files over HTTP.",
        allow_abbrev=False,
    )
    parser.add_argument("-p", "--port", type=int, help="port to serve on (default: 8100)")
    parser.add_argument("-d", "--directory", help="the directory of static files to host (default: .)")
    parser.add_argument("-b", "--base-uri", dest="base_uri", help="base path of static files on the web (default: /)")
    parser.add_argument("-k", "--keep-alive", dest="keep_alive", help="Keep-Alive header value")
    parser.add_argument("-c", "--cache-control", dest="cache_control", help="Cache-Control header value")
    bool_flags = (
        ("-e", "--etag", "etag", "calculate and add etag from file content"),
        ("-i", "--dir-index", "dir_index", "show directories index"),
        ("-l", "--log", "log", "show requests logs"),
        ("-m", "--metrics", "metrics", "generate and serve metrics"),
    )
    for short, long, dest, help_text in bool_flags:
        parser.add_argument(
            short, long, dest=dest, nargs="?", const=True, type=_flag_bool, help=help_text
        )
    parser.add_argument(
        "-mp", "--metrics-port", dest="metrics_port", type=int,
        help="serve metrics on port (default: 9090)",
    )
    return parser


def parse_flags(argv: Sequence[str]) -> dict[str, Any]:
    """Parse command line flags. Flags that were not given map to None."""
    namespace = build_parser().parse_args(list(argv))
    return {name: getattr(namespace, name) for name in DEFAULTS}


def read_environ(environ: Mapping[str, str]) -> dict[str, Any]:
    """
    Read options from environment variables.

    Args:
        environ: Environment mapping (usually ``os.environ``).

    Returns:
        Dict with one entry per option; None where the variable is unset or empty.

    Raises:
        ConfigError: If an integer option holds a non-numeric value.
    """
    values: dict[str, Any] = {}
    for name, var in ENV_VARS.items():
        raw = environ.get(var, "")
        if raw == "":
            values[name] = None
        elif name in _INT_OPTIONS:
            try:
                values[name] = int(raw)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {var}: {raw!r} is not a number") from e
        elif name in _BOOL_OPTIONS:
            values[name] = raw.strip().lower() not in _FALSE_VALUES
        else:
            values[name] = raw
    return values


def resolve_config(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ServerConfig:
    """
    Resolve the server configuration from defaults, environment and flags.

    Args:
        argv: Command line arguments without the program name. Default: none.
        environ: Environment mapping. Default: ``os.environ``.

    Returns:
        The resolved ServerConfig.

    Raises:
        ConfigError: On invalid environment values.
        SystemExit: On invalid flags (argparse behavior).
    """
    env_opts = SmartOptions(read_environ(os.environ if environ is None else environ), ignore_none=True)
    flag_opts = SmartOptions(parse_flags(argv or []), ignore_none=True)
    opts = SmartOptions(DEFAULTS) + env_opts + flag_opts
    return ServerConfig.from_options(opts)

