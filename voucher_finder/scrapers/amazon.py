"""
amazon.in Gift Card Scraper

Scrapes gift card listings from the amazon.in gift card search results,
sorted by popularity. Result pages are plain HTML; each listing is a
`div.s-result-item[data-asin]` block. The discount is only mentioned in the
title ("... | Flat 6% off"), stock is never reported.

Amazon throttles and serves CAPTCHA pages to scrapers, so every page is
fetched with a fresh client and User-Agent, pages are spaced by a random
delay, and block pages are detected before parsing.
"""
from typing import Optional

from bs4 import BeautifulSoup, Tag

from voucher_finder.config import settings
from voucher_finder.errors import AntiBotBlock, TransportFailure
from voucher_finder.models import URL_UNAVAILABLE, RawListing, RawListings
from voucher_finder.scrapers.base import (
    RequestPolicy,
    SourceAdapter,
    detect_block_page,
    fetch_page,
    make_absolute_url,
    parse_flat_discount,
)
from voucher_finder.scrapers.pagination import discover_page_count
from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)

BASE_URL = "https://www.amazon.in"
SEARCH_URL = f"{BASE_URL}/s?i=gift-cards&s=popularity-rank&rh=n%3A6681889031&page="
SOURCE_NAME = "Amazon"
SOURCE_ID = "amazon"
MAX_PAGES = settings.AMAZON_MAX_PAGES


class AmazonAdapter(SourceAdapter):
    """Paginated HTML adapter for amazon.in gift card search results."""

    site_name = SOURCE_NAME
    source_id = SOURCE_ID

    def __init__(
        self,
        search_url: str = SEARCH_URL,
        policy: Optional[RequestPolicy] = None,
        max_pages: int = MAX_PAGES,
    ):
        self.search_url = search_url
        self.policy = policy or RequestPolicy()
        self.max_pages = max_pages

    def page_url(self, page: int) -> str:
        return f"{self.search_url}{page}"

    async def fetch_all(self) -> RawListings:
        """
        Scrape every result page.

        Page 1 is fetched first and its pagination control gives the page
        count. Pages are then fetched one by one with a random delay in
        between. A page that still fails after the retry budget is skipped.

        Returns:
            RawListing dicts from every page that could be fetched and parsed.
            Empty list if page 1 could not be fetched.
        """
        results: RawListings = []
        logger.info(f"{SOURCE_NAME} - Starting voucher scraping")

        try:
            first_page = await self._load_page(1)
            if first_page is None:
                logger.error(f"{SOURCE_NAME} - First page unavailable, nothing scraped")
                return results

            page_count = discover_page_count(first_page)
            if page_count > self.max_pages:
                logger.warning(
                    f"{SOURCE_NAME} - Pagination reports {page_count} pages, "
                    f"limiting to {self.max_pages}"
                )
                page_count = self.max_pages
            logger.info(f"{SOURCE_NAME} - Found {page_count} result pages")

            results.extend(self._extract_page(first_page, 1))

            for page in range(2, page_count + 1):
                await self.policy.wait_between_pages()

                soup = await self._load_page(page)
                if soup is None:
                    if page == page_count:
                        logger.info(f"{SOURCE_NAME} - Last page {page} unavailable, treating as end of data")
                    else:
                        logger.warning(f"{SOURCE_NAME} - Skipping page {page} after failed retries")
                    continue

                results.extend(self._extract_page(soup, page))

        except Exception as e:
            # Keep whatever pages were collected before the failure
            logger.error(f"{SOURCE_NAME} - Scraping aborted: {type(e).__name__}: {e}")

        logger.info(f"{SOURCE_NAME} - Scraped {len(results)} listings total")
        return results

    async def _load_page(self, page: int) -> Optional[BeautifulSoup]:
        """Fetch and parse one result page, None if every attempt failed."""
        url = self.page_url(page)
        logger.debug(f"{SOURCE_NAME} - Fetching page {page}")
        try:
            html = await fetch_page(url, self.policy)
        except TransportFailure as e:
            logger.warning(f"{SOURCE_NAME} - Page {page} failed: {e}")
            return None
        return BeautifulSoup(html, "lxml")

    def _extract_page(self, soup: BeautifulSoup, page: int) -> RawListings:
        """Extract listings from a page, or none if it is a block page."""
        try:
            _check_not_blocked(soup, self.page_url(page))
        except AntiBotBlock as e:
            logger.warning(f"{SOURCE_NAME} - Page {page} blocked: {e.signature}")
            return []

        listings: RawListings = []
        for item in soup.select("div.s-result-item[data-asin]"):
            try:
                listing = _parse_listing(item)
            except Exception as e:
                logger.warning(f"{SOURCE_NAME} - Failed to parse listing on page {page}: {e}")
                continue
            if listing:
                listings.append(listing)

        logger.debug(f"{SOURCE_NAME} - Page {page}: found {len(listings)} listings")
        return listings


def _check_not_blocked(soup: BeautifulSoup, url: str) -> None:
    signature = detect_block_page(soup)
    if signature:
        raise AntiBotBlock(url, signature)


def _parse_listing(item: Tag) -> Optional[RawListing]:
    """Parse a search result block into a RawListing, None if it has no title."""
    title_tag = item.select_one("h2 span")
    if not title_tag:
        return None
    title = " ".join(title_tag.get_text().split())
    if not title:
        return None

    link = item.select_one("a.a-link-normal[href]")
    url = make_absolute_url(BASE_URL, link["href"]) if link else URL_UNAVAILABLE

    image = item.select_one("img.s-image")
    image_url = image.get("src") if image else None

    return RawListing(
        title=title,
        discount=parse_flat_discount(title),
        image_url=image_url or None,
        url=url,
    )
