"""Application entry point for the username attestor server."""

from __future__ import annotations

import logging
import os

import uvicorn

from username_attestor.config.settings import AppConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main() -> None:
    """Start the username attestor server."""
    config = AppConfig()
    logging.basicConfig(level=config.log_level.upper(), format=LOG_FORMAT)
    reload = os.getenv("ATTESTOR_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "username_attestor.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
