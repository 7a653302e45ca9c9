"""
Exception types for the voucher finder.

Scraping failures (TransportFailure, ParseFailure, AntiBotBlock) are raised
inside adapters and caught at the adapter boundary; they never reach the
orchestrator. Query errors reach the caller of best_match.
"""
from typing import Optional


class VoucherFinderError(Exception):
    """Base class for all voucher finder errors."""


class TransportFailure(VoucherFinderError):
    """A page or API request failed at the network or HTTP level."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"{url}: {message}")


class ParseFailure(VoucherFinderError):
    """A fetched page or JSON document could not be interpreted."""


class AntiBotBlock(VoucherFinderError):
    """A fetched page is a block page (CAPTCHA or "sorry" page)."""

    def __init__(self, url: str, signature: str):
        self.url = url
        self.signature = signature
        super().__init__(f"{url}: block page detected ({signature})")


class QueryError(VoucherFinderError):
    """A best-match request was rejected before scoring."""

    reason = "invalid_query"


class InvalidQueryError(QueryError):
    """The query is empty, whitespace only, or not a string."""

    reason = "invalid_query"


class EmptyCorpusError(QueryError):
    """There are no records to search."""

    reason = "empty_corpus"


class CycleInProgressError(RuntimeError, VoucherFinderError):
    """Another scrape cycle is already running."""
