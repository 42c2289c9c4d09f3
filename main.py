"""Main entry point for Crawl Sync."""

import asyncio

from crawl_sync.core.config import settings
from crawl_sync.core.logging import logger
from crawl_sync.models.job import StoreSnapshot
from crawl_sync.sync.session import CrawlSyncSession


def log_summary(snapshot: StoreSnapshot):
    summary = snapshot.summary
    logger.info(
        f"Crawls: total={summary.total} pending={summary.pending} "
        f"completed={summary.completed} failed={summary.failed}"
    )


async def run():
    """Sync the crawl list until cancelled."""
    session = CrawlSyncSession.from_settings()
    session.store.subscribe(log_summary)

    async with session:
        if session.last_error:
            logger.warning(session.last_error)
        await asyncio.Event().wait()


def main():
    """Run the sync engine against the configured API."""
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}")
    logger.info(f"API: {settings.API_BASE_URL}  stream: {settings.WS_URL}")

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
