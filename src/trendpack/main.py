"""Main entry point - logging setup and the HTTP server."""

import asyncio
import logging
import sys

import uvicorn

from .config import settings

# Configure structured JSON logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
    datefmt="%Y-%m-%dT%H:%M:%S%z",
)
logger = logging.getLogger(__name__)


async def main() -> None:
    """Serve the API until a shutdown signal arrives."""
    logger.info("=" * 60)
    logger.info("Trend pack crawler starting...")
    logger.info(f"Crawler enabled: {settings.crawler_enabled}")
    logger.info(f"Database: {settings.database_path}")
    logger.info(f"Crawl trigger auth: {'bearer key' if settings.internal_api_key else 'open'}")
    logger.info("=" * 60)

    config = uvicorn.Config(
        "trendpack.api:app",
        host=settings.host,
        port=settings.port,
        log_level="warning",
    )
    server = uvicorn.Server(config)

    # uvicorn handles SIGINT/SIGTERM; app lifespan owns db and fetcher
    await server.serve()

    logger.info("Shutdown complete")


def run():
    """Entry point for running the application."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    run()
