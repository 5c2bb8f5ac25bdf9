"""
Gatherer search results scraper.

Fetches paginated card search results from Gatherer's "standard" output and
extracts one card record per result row.

Note: Web scraping is inherently fragile. Page structure may change.
Every lookup of an expected element raises ElementNotFoundError with the
selector, page number and row index, so a layout change is reported as
precisely as possible instead of producing partial records.
"""

import asyncio
import logging
from urllib.parse import parse_qs, urlsplit

import bs4
import httpx

from cardscience.config import settings
from cardscience.models.card import RawCard
from cardscience.models.failure import ElementNotFoundError, FetchError
from cardscience.parsers.mana_cost import parse_mana_cost

logger = logging.getLogger(__name__)

GATHERER_SEARCH_PATH = "/Pages/Search/Default.aspx"

# Page structure
ROW_TABLE_SELECTOR = ".cardItemTable"
ROW_SELECTOR = "tr.cardItem"
PAGING_SELECTOR = "div.pagingControls"

# Row structure
CARD_INFO_SELECTOR = "div.cardInfo"
SET_VERSIONS_SELECTOR = "td.setVersions"
SET_LINK_SELECTOR = 'div[id$="cardSetCurrent"] > a'
MANA_COST_SELECTOR = "span.manaCost"
TITLE_SELECTOR = "span.cardTitle a"
CONVERTED_COST_SELECTOR = "span.convertedManaCost"

MULTIVERSE_ID_PARAM = "multiverseid"


def search_params(page_number: int, format_filter: str | None = None) -> dict[str, str | int]:
    """Query parameters for one page of search results."""
    return {
        "page": page_number,
        "output": "standard",
        "special": "true",
        "format": format_filter if format_filter is not None else settings.gatherer_format,
    }


class SearchPage:
    """A fetched page of search results."""

    def __init__(self, html: str, page_number: int, url: str | None = None) -> None:
        self.page_number = page_number
        self.url = url
        self.soup = bs4.BeautifulSoup(html, "html.parser")

    def rows(self) -> list[bs4.element.Tag]:
        """
        Return the card result rows, in page order.

        Raises:
            ElementNotFoundError: If the results table is missing
        """
        table = self.soup.select_one(ROW_TABLE_SELECTOR)
        if table is None:
            raise ElementNotFoundError(ROW_TABLE_SELECTOR, page_number=self.page_number)
        return list(table.select(ROW_SELECTOR))

    def has_next_page(self) -> bool:
        """
        Whether the paging controls link onward.

        The last node of the paging controls is a link on every page but the
        last one.

        Raises:
            ElementNotFoundError: If the paging controls are missing
        """
        paging = self.soup.select_one(PAGING_SELECTOR)
        if paging is None:
            raise ElementNotFoundError(PAGING_SELECTOR, page_number=self.page_number)

        nodes = [
            node
            for node in paging.children
            if isinstance(node, bs4.element.Tag) or str(node).strip()
        ]
        if not nodes:
            return False

        last = nodes[-1]
        return isinstance(last, bs4.element.Tag) and last.name == "a"


async def fetch_search_page(
    page_number: int,
    client: httpx.AsyncClient,
    *,
    base_url: str | None = None,
    format_filter: str | None = None,
    retries: int | None = None,
    backoff: float | None = None,
) -> SearchPage:
    """
    Fetch one page of search results.

    Failed requests are retried with exponential backoff.

    Args:
        page_number: Zero-based results page
        client: httpx client for connection reuse
        base_url: Gatherer root. Defaults to settings.gatherer_base_url
        format_filter: Legality filter token. Defaults to settings.gatherer_format
        retries: Extra attempts after the first. Defaults to settings.fetch_retries
        backoff: Initial delay between attempts in seconds

    Returns:
        The parsed page

    Raises:
        FetchError: If every attempt fails
    """
    url = (base_url or settings.gatherer_base_url).rstrip("/") + GATHERER_SEARCH_PATH
    params = search_params(page_number, format_filter)
    retries = settings.fetch_retries if retries is None else retries
    delay = settings.fetch_backoff if backoff is None else backoff

    attempt = 0
    while True:
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return SearchPage(response.text, page_number, url=str(response.url))
        except httpx.HTTPError as e:
            status_code = None
            if isinstance(e, httpx.HTTPStatusError):
                status_code = e.response.status_code

            if attempt >= retries:
                logger.error("Couldn't fetch page %d from Gatherer: %s", page_number, e)
                raise FetchError(
                    page_number, url, detail=str(e), status_code=status_code
                ) from e

            attempt += 1
            logger.warning(
                "Fetch of page %d failed (%s), retry %d/%d in %.1fs",
                page_number,
                e,
                attempt,
                retries,
                delay,
            )
            await asyncio.sleep(delay)
            delay *= 2


def _require(
    parent: bs4.element.Tag,
    selector: str,
    page_number: int | None,
    item_index: int | None,
) -> bs4.element.Tag:
    element = parent.select_one(selector)
    if element is None:
        raise ElementNotFoundError(selector, page_number=page_number, item_index=item_index)
    return element


def _multiverse_id(href: str) -> str | None:
    """Pull the multiverse id out of a card details link."""
    values = parse_qs(urlsplit(href).query).get(MULTIVERSE_ID_PARAM)
    return values[0] if values else None


def _parse_number(text: str) -> int | float | str:
    """Converted cost as shown, e.g. "(3)" -> 3. Non-numeric text is kept."""
    cleaned = text.strip().strip("()").strip()
    try:
        return int(cleaned)
    except ValueError:
        pass
    try:
        return float(cleaned)
    except ValueError:
        return cleaned


def extract_card(
    row: bs4.element.Tag,
    page_number: int | None = None,
    item_index: int | None = None,
) -> RawCard:
    """
    Extract a card record from one search result row.

    Args:
        row: A `tr.cardItem` element
        page_number: Page the row came from, for error context
        item_index: Position of the row on its page, for error context

    Returns:
        RawCard with title, multiverse id, mana cost and converted cost

    Raises:
        ElementNotFoundError: If any expected element is missing from the row
    """
    card_info = _require(row, CARD_INFO_SELECTOR, page_number, item_index)
    set_versions = _require(row, SET_VERSIONS_SELECTOR, page_number, item_index)
    set_link = _require(set_versions, SET_LINK_SELECTOR, page_number, item_index)
    mana_cost_elem = _require(card_info, MANA_COST_SELECTOR, page_number, item_index)
    title_elem = _require(row, TITLE_SELECTOR, page_number, item_index)
    converted_elem = _require(card_info, CONVERTED_COST_SELECTOR, page_number, item_index)

    external_id = _multiverse_id(str(set_link.get("href", "")))
    if not external_id:
        raise ElementNotFoundError(
            f"{SET_LINK_SELECTOR}[href*={MULTIVERSE_ID_PARAM}]",
            page_number=page_number,
            item_index=item_index,
        )

    labels = [str(img.get("alt", "")) for img in mana_cost_elem.find_all("img")]

    return RawCard(
        title=title_elem.get_text(strip=True),
        external_id=external_id,
        mana_cost=parse_mana_cost(labels),
        converted_cost=_parse_number(converted_elem.get_text()),
    )
