"""
Scrape Gatherer search results into the document store.

Run this job to refresh the card documents, or with --install-db to push
the design documents (views) of every schema and exit.
"""

import argparse
import asyncio
import logging
import sys

import httpx

from cardscience.config import settings
from cardscience.db.database import create_engine
from cardscience.db.operations import ensure_database, install_all_design_documents
from cardscience.db.store import DocumentStore, SqlDocumentStore
from cardscience.models.failure import CardScienceError
from cardscience.models.registry import build_registry
from cardscience.models.schema import SchemaRegistry
from cardscience.scrapers.gatherer import SearchPage, fetch_search_page
from cardscience.services.crawler import CrawlReport, Crawler
from cardscience.services.runner import FailurePolicy

logger = logging.getLogger(__name__)


async def install_design_documents(store: DocumentStore, registry: SchemaRegistry) -> bool:
    """
    Install every schema's design documents.

    Returns True on success. On failure the reason is logged and the
    remaining schemas are not installed.
    """
    try:
        await ensure_database(store)
        await install_all_design_documents(store, registry)
    except CardScienceError as e:
        logger.error("Problem updating design documents: %s", e.reason)
        return False

    logger.info("Updated all design docs successfully.")
    return True


async def scrape(
    store: DocumentStore,
    registry: SchemaRegistry,
    client: httpx.AsyncClient,
    *,
    start_page: int = 0,
    max_pages: int | None = None,
    policy: FailurePolicy = FailurePolicy.FAIL_FAST,
) -> CrawlReport:
    """
    Make sure the store exists, then crawl from `start_page`.

    Raises:
        CardScienceError: If the crawl is aborted
    """
    await ensure_database(store)

    async def fetch_page(page_number: int) -> SearchPage:
        return await fetch_search_page(page_number, client)

    crawler = Crawler(fetch_page, store, registry, policy=policy, max_pages=max_pages)
    return await crawler.run(start_page)


async def run_job(
    *,
    install_db: bool = False,
    start_page: int = 0,
    max_pages: int | None = None,
    policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    database_url: str | None = None,
) -> int:
    """
    Run the job. Returns the process exit status.
    """
    engine = create_engine(database_url)
    store = SqlDocumentStore(engine)
    registry = build_registry()

    try:
        if install_db:
            return 0 if await install_design_documents(store, registry) else 1

        async with httpx.AsyncClient(
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
            timeout=settings.request_timeout,
        ) as client:
            try:
                report = await scrape(
                    store,
                    registry,
                    client,
                    start_page=start_page,
                    max_pages=max_pages,
                    policy=policy,
                )
            except CardScienceError as e:
                logger.error("Problems fetching the pages, giving up: %s", e.reason)
                return 1

        if not report.ok:
            logger.error("%d cards could not be stored", len(report.failures))
            return 1

        logger.info("Success! %d cards stored.", report.cards_saved)
        return 0
    finally:
        await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape Gatherer cards into the document store")
    parser.add_argument(
        "-i",
        "--install-db",
        action="store_true",
        help="Install design documents into the document store and exit",
    )
    parser.add_argument(
        "--start-page",
        type=int,
        default=0,
        help="First results page to fetch",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        help=f"Stop after this many pages (default {settings.max_pages})",
    )
    parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Record cards that fail and keep going instead of aborting the page",
    )
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy URL of the document store",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)

    logger.info("Welcome to %s.", settings.app_name)
    policy = FailurePolicy.CONTINUE if args.continue_on_error else FailurePolicy.FAIL_FAST

    return asyncio.run(
        run_job(
            install_db=args.install_db,
            start_page=args.start_page,
            max_pages=args.max_pages,
            policy=policy,
            database_url=args.database_url,
        )
    )


if __name__ == "__main__":
    sys.exit(main())
