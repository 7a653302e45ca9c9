"""
Normalization of raw listings into VoucherRecords.

Every source goes through the same rules:
- Name: whitespace trimmed, everything from the first "|" on dropped
- Discount: integer percent in [0, 100], 0 when missing or unparseable
- Stock: True unless the source explicitly reports the item unavailable
- URL: "N/A" when missing; image: None when missing

Listings whose name ends up empty are dropped.
"""
import re
from typing import Any, Iterable, List, Optional

from voucher_finder.models import URL_UNAVAILABLE, RawListing, VoucherRecord

NAME_DELIMITER = "|"
NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")
FALSE_STRINGS = {"false", "0", "no", "n", "out of stock", "outofstock"}


def normalize_name(title: Optional[str]) -> str:
    """
    Display name from a source title.

    Examples:
        >>> normalize_name("  Amazon Pay Gift Card | Flat 5% off ")
        'Amazon Pay Gift Card'
        >>> normalize_name("| only a suffix")
        ''
    """
    if not title:
        return ""
    name = title.split(NAME_DELIMITER, 1)[0]
    return " ".join(name.split())


def parse_discount(value: Any) -> int:
    """
    Integer percent off, clamped to [0, 100].

    Accepts ints, floats and numeric strings ("12", "12.5%"). Fractions are
    truncated. Anything else gives 0.

    Examples:
        >>> parse_discount(12.9)
        12
        >>> parse_discount("7%")
        7
        >>> parse_discount(None)
        0
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = NUMBER_PATTERN.search(value)
        if not match:
            return 0
        number = float(match.group(0))
    else:
        return 0

    if number != number:  # NaN
        return 0
    return max(0, min(100, int(number)))


def parse_stock(value: Any) -> bool:
    """Stock flag, defaulting to available when the source says nothing."""
    if value is None:
        return True
    if isinstance(value, str):
        text = value.strip().lower()
        if not text:
            return True
        return text not in FALSE_STRINGS
    return bool(value)


def normalize_listing(raw: RawListing, site_name: str) -> Optional[VoucherRecord]:
    """
    Map one raw listing to a VoucherRecord.

    Args:
        raw: Listing as extracted by an adapter
        site_name: Identifier of the source that produced it

    Returns:
        VoucherRecord, or None if the listing has no usable name.
    """
    name = normalize_name(raw.get("title"))
    if not name:
        return None

    url = (raw.get("url") or "").strip() or URL_UNAVAILABLE
    image_url = (raw.get("image_url") or "").strip() or None

    return VoucherRecord(
        name=name,
        discount_pct=parse_discount(raw.get("discount")),
        url=url,
        image_url=image_url,
        site_name=site_name,
        in_stock=parse_stock(raw.get("in_stock")),
    )


def normalize_listings(raws: Iterable[RawListing], site_name: str) -> List[VoucherRecord]:
    """Normalize a batch of listings, dropping the ones without a name."""
    records: List[VoucherRecord] = []
    for raw in raws:
        record = normalize_listing(raw, site_name)
        if record is not None:
            records.append(record)
    return records


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def normalize_entry(entry: Any) -> Optional[VoucherRecord]:
    """
    Rebuild a record from a snapshot file entry.

    Entries use the snapshot field names (name, discount_pct, url, image_url,
    sitename, InStock) and may hold raw source values, e.g. "7.5" or "false",
    so they get the same rules as freshly scraped listings.

    Returns:
        VoucherRecord, or None if the entry has no usable name or site.
    """
    if not isinstance(entry, dict):
        return None
    site_name = " ".join((_text(entry.get("sitename")) or "").split())
    if not site_name:
        return None

    raw = RawListing(
        title=_text(entry.get("name")) or "",
        discount=entry.get("discount_pct"),
        in_stock=entry.get("InStock"),
        image_url=_text(entry.get("image_url")),
        url=_text(entry.get("url")),
    )
    return normalize_listing(raw, site_name)
