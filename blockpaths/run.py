"""Programmatic uvicorn entry point for blockpaths.

Loads the config, compiles the gate and starts uvicorn on proxy.host/proxy.port
(127.0.0.1:8000 by default).

Usage:
    python -m blockpaths.run
    blockpaths                 # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import sys

import uvicorn

from blockpaths.config import load_config
from blockpaths.gate import ConfigurationError
from blockpaths.main import LOG_LEVEL, create_app

# Maximum number of concurrent connections accepted by uvicorn.
# Must match the httpx pool size (POOL_MAX_CONNECTIONS in proxy/engine.py).
UVICORN_LIMIT_CONCURRENCY: int = 100

UVICORN_BACKLOG: int = 50

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start blockpaths with hardened uvicorn defaults.

    Raises:
        SystemExit(1): Invalid config file or unusable gate configuration.
    """
    config = load_config()

    try:
        app = create_app(config)
    except ConfigurationError as exc:
        print(f"CONFIG ERROR: {exc}", file=sys.stderr)
        raise SystemExit(1)

    uvicorn.run(
        app,
        host=config.proxy.host,
        port=config.proxy.port,
        log_level=LOG_LEVEL.lower(),
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
