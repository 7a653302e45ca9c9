"""
Scraper Package

Source adapters and the shared scraping utilities they are built on.

Exports:
    - SourceAdapter: Interface implemented by every source
    - RequestPolicy: User-Agent rotation, page delay and retry settings
    - create_http_client: Create configured async HTTP client
    - fetch_page: GET a page with retries
    - detect_block_page: Recognize CAPTCHA / "sorry" pages
    - parse_flat_discount: Parse "Flat N% off" from a title
    - make_absolute_url: Convert relative URLs to absolute
    - discover_page_count: Page count from a pagination control
    - AmazonAdapter: Paginated HTML adapter for amazon.in gift cards
    - MaximizeMoneyAdapter: JSON API adapter for Maximize Money
"""
from voucher_finder.scrapers.base import (
    FETCH_RETRIES,
    PAGE_DELAY_MAX,
    PAGE_DELAY_MIN,
    REQUEST_TIMEOUT,
    RETRY_BACKOFF,
    USER_AGENTS,
    RequestPolicy,
    SourceAdapter,
    create_http_client,
    detect_block_page,
    fetch_page,
    make_absolute_url,
    parse_flat_discount,
)
from voucher_finder.scrapers.pagination import discover_page_count
from voucher_finder.scrapers.amazon import AmazonAdapter
from voucher_finder.scrapers.maximize import MaximizeMoneyAdapter

__all__ = [
    # Interface and request policy
    "SourceAdapter",
    "RequestPolicy",
    "USER_AGENTS",
    "REQUEST_TIMEOUT",
    "FETCH_RETRIES",
    "RETRY_BACKOFF",
    "PAGE_DELAY_MIN",
    "PAGE_DELAY_MAX",
    # HTTP
    "create_http_client",
    "fetch_page",
    "detect_block_page",
    # Parsing helpers
    "parse_flat_discount",
    "make_absolute_url",
    "discover_page_count",
    # Adapters
    "AmazonAdapter",
    "MaximizeMoneyAdapter",
]
