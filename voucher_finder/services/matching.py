"""
Best-voucher matching.

Finds the single best voucher for a free-text name such as "amazon gift":

1. Query and record names are normalized the same way (lowercase,
   alphanumerics and whitespace only).
2. Every record is scored against the query (0-100, higher is better).
3. Records below the minimum score are discarded.
4. Of the rest, an in-stock voucher beats an out-of-stock one, then the
   higher discount wins, then the earlier record.

Scoring works per query word: each word is compared to its closest word in
the name with rapidfuzz's edit-distance ratio, and the record's score is the
average over the query words. Word pairs that are less than half similar
count as zero, so a query sharing no reasonably close word with a name does
not match it at all.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Union

from rapidfuzz import fuzz, process

from voucher_finder.errors import EmptyCorpusError, InvalidQueryError
from voucher_finder.models import VoucherRecord
from voucher_finder.services.snapshot import SnapshotHolder, snapshot_holder
from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MIN_SCORE = 25
# Minimum ratio for a query word to count as matching a name word
TOKEN_SCORE_CUTOFF = 50

NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")


class NotFoundReason(str, Enum):
    """Why a query produced no voucher."""

    EMPTY_CORPUS = "empty_corpus"
    INVALID_QUERY = "invalid_query"
    NO_LOOSE_MATCH = "no_loose_match"
    BELOW_THRESHOLD = "below_threshold"


@dataclass(frozen=True)
class NotFound:
    """No-match outcome of best_match.

    Attributes:
        reason: NO_LOOSE_MATCH or BELOW_THRESHOLD
        query: The query as given by the caller
        best_score: Highest score seen (BELOW_THRESHOLD only)
        min_score: Threshold that was applied
    """
    reason: NotFoundReason
    query: str
    best_score: Optional[int] = None
    min_score: Optional[int] = None

    @property
    def message(self) -> str:
        if self.reason == NotFoundReason.BELOW_THRESHOLD:
            return (
                f'No sufficiently relevant results found for "{self.query}". '
                f"(Best match score {self.best_score} was below the threshold of {self.min_score})"
            )
        return f'No results found for "{self.query}" (no items loosely matched the query).'


class ScoredRecord(NamedTuple):
    record: VoucherRecord
    score: int
    index: int


MatchOutcome = Union[VoucherRecord, NotFound]


def normalize_text(text: Optional[str]) -> str:
    """
    Normalize text for fuzzy scoring.

    Lowercases, removes every character that is not a-z, 0-9 or whitespace,
    and collapses whitespace. Applying it twice gives the same result.

    Examples:
        >>> normalize_text("Amazon Pay™ Gift-Card")
        'amazon pay giftcard'
        >>> normalize_text("H&M  E-Voucher")
        'hm evoucher'
    """
    if not text:
        return ""
    cleaned = NON_ALPHANUMERIC.sub("", text.lower())
    return " ".join(cleaned.split())


def fuzzy_score(normalized_query: str, normalized_name: str) -> int:
    """
    Score a normalized name against a normalized query (0-100).

    Examples:
        >>> fuzzy_score("amazon gift", "amazon pay gift card")
        100
        >>> fuzzy_score("flipkart", "amazon pay gift card")
        0
    """
    query_tokens = normalized_query.split()
    name_tokens = normalized_name.split()
    if not query_tokens or not name_tokens:
        return 0

    total = 0.0
    for token in query_tokens:
        best = process.extractOne(
            token, name_tokens, scorer=fuzz.ratio, score_cutoff=TOKEN_SCORE_CUTOFF
        )
        if best is not None:
            total += best[1]
    return int(round(total / len(query_tokens)))


def score_records(records: Sequence[VoucherRecord], query: str) -> List[ScoredRecord]:
    """
    Score every record against a query, keeping only loose matches (score > 0).

    Results keep the order of `records`.
    """
    normalized_query = normalize_text(query)
    scored: List[ScoredRecord] = []
    for index, record in enumerate(records):
        score = fuzzy_score(normalized_query, normalize_text(record.name))
        if score > 0:
            scored.append(ScoredRecord(record, score, index))
    return scored


def filter_by_score(scored: Sequence[ScoredRecord], min_score: int) -> List[ScoredRecord]:
    """Candidates scoring at least `min_score`."""
    return [candidate for candidate in scored if candidate.score >= min_score]


def select_best(candidates: Sequence[ScoredRecord]) -> VoucherRecord:
    """
    Pick the winner: in stock first, then highest discount, then earliest.

    Raises:
        ValueError: If `candidates` is empty.
    """
    if not candidates:
        raise ValueError("No candidates to select from")
    best = min(
        candidates,
        key=lambda c: (not c.record.in_stock, -c.record.discount_pct, c.index),
    )
    return best.record


def best_match(
    records: Sequence[VoucherRecord],
    query: str,
    min_score: int = DEFAULT_MIN_SCORE,
) -> MatchOutcome:
    """
    Find the best voucher for a free-text query.

    Args:
        records: Records to search
        query: Free-text voucher name
        min_score: Minimum fuzzy score for a record to be considered

    Returns:
        The winning VoucherRecord (one of `records`), or NotFound with reason
        NO_LOOSE_MATCH or BELOW_THRESHOLD.

    Raises:
        EmptyCorpusError: If `records` is empty.
        InvalidQueryError: If `query` is not a string or is blank.
    """
    if not records:
        raise EmptyCorpusError("No data provided to search.")
    if not isinstance(query, str) or not query.strip():
        raise InvalidQueryError("Search query is empty or invalid.")

    scored = score_records(records, query)
    if not scored:
        logger.debug(f"No loose match for {query!r}")
        return NotFound(NotFoundReason.NO_LOOSE_MATCH, query, min_score=min_score)

    candidates = filter_by_score(scored, min_score)
    if not candidates:
        best_score = max(c.score for c in scored)
        logger.debug(f"Best score {best_score} for {query!r} below threshold {min_score}")
        return NotFound(NotFoundReason.BELOW_THRESHOLD, query, best_score=best_score, min_score=min_score)

    return select_best(candidates)


class VoucherService:
    """Query facade over the current snapshot, used by the API and CLI."""

    def __init__(self, holder: SnapshotHolder = snapshot_holder, min_score: int = DEFAULT_MIN_SCORE):
        self.holder = holder
        self.min_score = min_score

    def best_match(self, query: str) -> MatchOutcome:
        """Best voucher in the current snapshot; raises QueryError subclasses like best_match()."""
        snapshot = self.holder.current()
        return best_match(snapshot.records, query, self.min_score)

    def current_snapshot(self):
        return self.holder.current()
