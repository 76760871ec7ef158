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
staticserve CLI entry point.

Usage:
    staticserve                                # serve . on port 8100
    staticserve -d ./public -b /static -e -l   # flags
    PORT=9000 ETAG=1 staticserve               # environment

Run ``staticserve --help`` for every option.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .exceptions import ConfigError, ListenerBindError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    from .config import resolve_config
    from .server import StaticServer

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    logger = logging.getLogger("staticserve")

    try:
        config = resolve_config(sys.argv[1:] if argv is None else argv)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if not Path(config.directory).is_dir():
        print(f"Error: '{config.directory}' is not a directory.", file=sys.stderr)
        return 1

    server = StaticServer(config)
    try:
        server.run()
    except ListenerBindError as e:
        logger.error(f"Unable to start: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nShutdown.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
