"""
Pagination discovery for paginated result pages.

The page count is read from the pagination control of the first page: the
largest numeric-only label among the control's items. "Next", "Previous" and
ellipsis items are ignored.
"""
import re
from typing import Iterable, List

from bs4 import BeautifulSoup

PAGINATION_SELECTORS = (
    ".s-pagination-item",
    ".s-pagination-strip a",
    ".s-pagination-strip span",
    ".pagination a",
    ".pagination li",
)

NUMERIC_TOKEN = re.compile(r"^\d+$")


def extract_pagination_markers(soup: BeautifulSoup) -> List[str]:
    """Return the text of every pagination control item, once per element."""
    markers: List[str] = []
    seen = set()
    for selector in PAGINATION_SELECTORS:
        for element in soup.select(selector):
            if id(element) in seen:
                continue
            seen.add(id(element))
            text = element.get_text(strip=True)
            if text:
                markers.append(text)
    return markers


def page_count_from_markers(markers: Iterable[str]) -> int:
    """
    Largest numeric-only marker, or 1 when there is none.

    Examples:
        >>> page_count_from_markers(["1", "2", "5", "3"])
        5
        >>> page_count_from_markers(["Previous", "Next"])
        1
    """
    numbers = [int(m.strip()) for m in markers if NUMERIC_TOKEN.match(m.strip())]
    positive = [n for n in numbers if n > 0]
    return max(positive) if positive else 1


def discover_page_count(soup: BeautifulSoup) -> int:
    """Number of result pages announced by a first result page."""
    return page_count_from_markers(extract_pagination_markers(soup))
