"""Module executed when running ``python -m glassflix``."""

from __future__ import annotations

import logging

import uvicorn

from app.config import settings

logger = logging.getLogger(__name__)


def main() -> None:
    """Serve the companion API on the configured local address."""

    logger.info("Starting %s on %s:%s", settings.app_name, settings.server_host, settings.server_port)
    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
