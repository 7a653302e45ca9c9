"""
Scraper Base Utilities

Shared pieces for all source adapters:
- SourceAdapter interface (one implementation per source)
- RequestPolicy: rotating User-Agent, jittered page delay, retry budget
- HTTP client factory with timeout and per-request identity
- fetch_page: bounded retry around a single GET
- Block page detection for anti-bot responses
- Discount and URL helpers
"""
import asyncio
import random
import re
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from voucher_finder.config import settings
from voucher_finder.errors import TransportFailure
from voucher_finder.models import RawListings
from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT = settings.REQUEST_TIMEOUT  # seconds
FETCH_RETRIES = settings.FETCH_RETRIES
RETRY_BACKOFF = settings.RETRY_BACKOFF  # seconds between attempts
PAGE_DELAY_MIN = settings.PAGE_DELAY_MIN  # seconds between pages
PAGE_DELAY_MAX = settings.PAGE_DELAY_MAX

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/15.1 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
)

# Phrases that only appear on CAPTCHA / robot-check pages
BLOCK_PAGE_PHRASES = (
    "enter the characters you see below",
    "to discuss automated access to amazon data",
    "captcha",
)

FLAT_DISCOUNT_PATTERN = re.compile(r"Flat\s+(\d+)%\s+off", re.IGNORECASE)


class SourceAdapter(ABC):
    """One external voucher source.

    fetch_all() is best-effort: page or request failures are logged and
    whatever was collected is returned. It should not raise; the orchestrator
    still isolates it in case it does.
    """

    #: Identifier written into VoucherRecord.site_name
    site_name: str = ""
    #: Persisted snapshot unit for this source
    source_id: str = ""

    @abstractmethod
    async def fetch_all(self) -> RawListings:
        """Fetch every listing this source currently offers."""


class RequestPolicy:
    """Request identity, pacing and retry settings for one adapter.

    Randomness comes from the injected `rng` and sleeping goes through the
    injected `sleep`, so tests can pass fixed values and skip real waits.
    """

    def __init__(
        self,
        user_agents: Sequence[str] = USER_AGENTS,
        delay_min: float = PAGE_DELAY_MIN,
        delay_max: float = PAGE_DELAY_MAX,
        retries: int = FETCH_RETRIES,
        backoff: float = RETRY_BACKOFF,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable] = None,
    ):
        if not user_agents:
            raise ValueError("At least one User-Agent is required")
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self.user_agents = tuple(user_agents)
        self.delay_min = delay_min
        self.delay_max = max(delay_min, delay_max)
        self.retries = retries
        self.backoff = backoff
        self.rng = rng or random.Random()
        self.sleep = sleep or asyncio.sleep

    def pick_user_agent(self) -> str:
        return self.rng.choice(self.user_agents)

    def page_delay(self) -> float:
        return self.rng.uniform(self.delay_min, self.delay_max)

    def headers(self) -> dict:
        """Browser-like headers with a freshly drawn User-Agent."""
        return {
            "Accept": "text/html",
            "Accept-Language": "en-US,en;q=0.9",
            "User-Agent": self.pick_user_agent(),
        }

    async def wait_between_pages(self) -> None:
        delay = self.page_delay()
        logger.debug(f"Waiting {delay:.1f}s before next page")
        await self.sleep(delay)

    async def wait_before_retry(self) -> None:
        await self.sleep(self.backoff)


def create_http_client(headers: Optional[dict] = None) -> httpx.AsyncClient:
    """Create a configured async HTTP client for scraping.

    The client is configured with:
    - REQUEST_TIMEOUT for all operations
    - The given headers (identity for this request)
    - Redirect following enabled

    A new client has an empty cookie jar, so creating one per page fetch
    gives every page a fresh session.

    Note:
        Always use as context manager: `async with create_http_client() as client:`
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(REQUEST_TIMEOUT),
        headers=headers or {},
        follow_redirects=True,
    )


async def fetch_page(url: str, policy: RequestPolicy) -> str:
    """
    GET a page with a fresh identity, retrying on failure.

    Each attempt uses a new client and a newly drawn User-Agent. Transport
    errors and error status codes are retried up to `policy.retries` times
    with a fixed `policy.backoff` wait in between.

    Args:
        url: Page URL
        policy: Request policy of the calling adapter

    Returns:
        Response body text.

    Raises:
        TransportFailure: After the last attempt failed.
    """
    last_error: Optional[Exception] = None
    status_code: Optional[int] = None

    for attempt in range(1, policy.retries + 1):
        try:
            async with create_http_client(policy.headers()) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPStatusError as e:
            last_error = e
            status_code = e.response.status_code
            logger.warning(
                f"Failed to fetch {url} (attempt {attempt}/{policy.retries}): HTTP {status_code}"
            )
        except httpx.TransportError as e:
            last_error = e
            logger.warning(
                f"Failed to fetch {url} (attempt {attempt}/{policy.retries}): "
                f"{type(e).__name__}: {e}"
            )

        if attempt < policy.retries:
            await policy.wait_before_retry()

    raise TransportFailure(url, f"gave up after {policy.retries} attempts: {last_error}", status_code)


def detect_block_page(soup: BeautifulSoup) -> Optional[str]:
    """
    Check whether a document is an anti-bot block page.

    Args:
        soup: Parsed page

    Returns:
        The matched signature, or None for a normal page.

    Examples:
        >>> detect_block_page(BeautifulSoup("<title>Sorry! Something went wrong!</title>", "lxml"))
        'title: Sorry! Something went wrong!'
    """
    title_tag = soup.find("title")
    if title_tag:
        title = title_tag.get_text(strip=True)
        if title.lower().startswith("sorry"):
            return f"title: {title}"

    if soup.select_one("form[action*='validateCaptcha']"):
        return "form: validateCaptcha"

    # Visible text only; inline scripts may mention captcha on normal pages
    text = " ".join(
        s for s in soup.find_all(string=True)
        if s.parent is not None and s.parent.name not in ("script", "style", "noscript")
    ).lower()
    for phrase in BLOCK_PAGE_PHRASES:
        if phrase in text:
            return f"phrase: {phrase}"
    return None


def parse_flat_discount(title: Optional[str]) -> int:
    """
    Extract the percent-off from a "Flat N% off" phrase in a title.

    Examples:
        >>> parse_flat_discount("Myntra E-Gift Card | Flat 6% off")
        6
        >>> parse_flat_discount("Amazon Pay Gift Card")
        0
    """
    if not title:
        return 0
    match = FLAT_DISCOUNT_PATTERN.search(title)
    if not match:
        return 0
    return int(match.group(1))


def make_absolute_url(base_url: str, relative_url: str) -> str:
    """Convert a relative URL to an absolute URL.

    Examples:
        >>> make_absolute_url("https://www.amazon.in", "/dp/B0ABC?ref=sr_1")
        'https://www.amazon.in/dp/B0ABC?ref=sr_1'
    """
    return urljoin(base_url, relative_url)
