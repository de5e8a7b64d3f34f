"""Run the gig market service with uvicorn."""

from __future__ import annotations

import uvicorn

from gig_market_service.app import create_app
from gig_market_service.config import get_settings


def main() -> None:
    """Start the HTTP server using the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.server.log_level,
    )


if __name__ == "__main__":
    main()
