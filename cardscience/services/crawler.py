"""
Paginated crawl of the Gatherer search results.

Fetches one results page at a time, stores every card on it through the
upsert pipeline, then follows the paging controls to the next page until
there is none (or the page cap is reached).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import bs4

from cardscience.config import settings
from cardscience.db.store import DocumentStore
from cardscience.models.failure import PageFailedError
from cardscience.models.schema import SchemaRegistry
from cardscience.scrapers.gatherer import SearchPage, extract_card
from cardscience.services.runner import FailurePolicy, ItemOutcome, RunReport, run_sequential
from cardscience.services.upsert import UpsertPipeline, UpsertResult

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int], Awaitable[SearchPage]]


@dataclass
class PageReport:
    """What happened on one results page."""

    page_number: int
    run: RunReport[UpsertResult]
    has_next: bool


@dataclass
class CrawlReport:
    """What happened over a whole crawl."""

    pages: list[PageReport] = field(default_factory=list)
    truncated: bool = False

    @property
    def cards_saved(self) -> int:
        return sum(page.run.succeeded for page in self.pages)

    @property
    def failures(self) -> list[tuple[int, ItemOutcome[UpsertResult]]]:
        """(page number, outcome) for every failed item."""
        return [(page.page_number, o) for page in self.pages for o in page.run.failures]

    @property
    def ok(self) -> bool:
        return not self.failures


class Crawler:
    """
    Drives the crawl page by page.

    Args:
        fetch_page: Async callable returning the SearchPage for a page number
        store: Document store to write cards into
        registry: Schema registry; frozen when the crawler is built
        schema_name: Registered schema the cards are stored under
        policy: FAIL_FAST aborts a page at its first failed card with
            PageFailedError; CONTINUE records the failure and moves on
        max_pages: Stop after this many pages. Defaults to settings.max_pages
        page_delay: Seconds to wait between pages. Defaults to settings.page_delay
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        store: DocumentStore,
        registry: SchemaRegistry,
        *,
        schema_name: str = "card",
        policy: FailurePolicy = FailurePolicy.FAIL_FAST,
        max_pages: int | None = None,
        page_delay: float | None = None,
    ) -> None:
        registry.freeze()
        self.fetch_page = fetch_page
        self.pipeline = UpsertPipeline(store, registry.get(schema_name))
        self.policy = policy
        self.max_pages = settings.max_pages if max_pages is None else max_pages
        self.page_delay = settings.page_delay if page_delay is None else page_delay

    async def run_page(self, page_number: int) -> PageReport:
        """
        Fetch one page and store every card on it.

        Raises:
            FetchError: If the page cannot be fetched
            ElementNotFoundError: If the results table or paging controls are missing
            PageFailedError: If a card fails under the FAIL_FAST policy
        """
        logger.info("Starting scrape fetch of page %d...", page_number)
        page = await self.fetch_page(page_number)
        rows = page.rows()
        logger.info("Page %d has %d cards", page_number, len(rows))

        async def store_row(index: int, row: bs4.element.Tag) -> UpsertResult:
            raw = extract_card(row, page_number=page_number, item_index=index)
            result = await self.pipeline.process(raw)
            if result.error is not None:
                raise result.error
            return result

        run = await run_sequential(rows, store_row, self.policy)

        if self.policy is FailurePolicy.FAIL_FAST and run.failures:
            failure = run.failures[0]
            reason = failure.error.reason if failure.error else None
            raise PageFailedError(page_number, failure.index, detail=reason) from failure.error

        return PageReport(page_number=page_number, run=run, has_next=page.has_next_page())

    async def run(self, start_page: int = 0) -> CrawlReport:
        """
        Crawl from `start_page` until the paging controls stop linking onward.

        Raises:
            Whatever run_page raises; pages already stored stay stored
        """
        report = CrawlReport()
        page_number = start_page

        while True:
            if len(report.pages) >= self.max_pages:
                logger.warning("Reached the %d page limit, stopping early", self.max_pages)
                report.truncated = True
                break

            page_report = await self.run_page(page_number)
            report.pages.append(page_report)

            if not page_report.has_next:
                logger.info("On last page!")
                break

            logger.info("More to do!")
            page_number += 1
            if self.page_delay > 0:
                await asyncio.sleep(self.page_delay)

        logger.info(
            "Crawl finished after %d pages: %d cards saved, %d failed",
            len(report.pages),
            report.cards_saved,
            len(report.failures),
        )
        return report
