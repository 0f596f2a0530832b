"""Gateway entry point — run the API + WebSocket gateway in one process.

Usage:
    managemate-gateway

Or:
    uvicorn managemate.main:app

Exits non-zero if Redis is unreachable at startup so the process
supervisor can restart or alert.
"""

import logging

import uvicorn

from managemate.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def main():
    """CLI entry point."""
    uvicorn.run(
        "managemate.main:app",
        host=settings.host,
        port=settings.port,
        lifespan="on",
    )


if __name__ == "__main__":
    main()
