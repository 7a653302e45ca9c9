"""
Data types shared by scrapers, services and the API.

RawListing is what an adapter extracts from a source, in whatever shape the
source offers. VoucherRecord is the canonical shape that gets persisted and
searched. RecordStore is one immutable snapshot of all records.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, TypedDict, Union

# Marker stored in `url` when a source gives no link to the offer
URL_UNAVAILABLE = "N/A"


class RawListing(TypedDict, total=False):
    """Listing as extracted by an adapter, before normalization.

    Attributes:
        title: Listing title or card name (required to survive normalization)
        discount: Percent off as int, or text such as "12" / "12.5"
        in_stock: Stock flag, omitted by sources that don't report stock
        image_url: Image link, may be relative or missing
        url: Link to the offer
    """
    title: str
    discount: Union[int, float, str, None]
    in_stock: Optional[bool]
    image_url: Optional[str]
    url: Optional[str]


RawListings = List[RawListing]


@dataclass(frozen=True)
class VoucherRecord:
    """Canonical voucher record."""

    name: str
    discount_pct: int
    url: str
    image_url: Optional[str]
    site_name: str
    in_stock: bool = True

    def to_dict(self) -> dict:
        """Serialize using the field names of the JSON snapshot files."""
        return {
            "name": self.name,
            "discount_pct": self.discount_pct,
            "url": self.url,
            "image_url": self.image_url,
            "sitename": self.site_name,
            "InStock": self.in_stock,
        }


@dataclass(frozen=True)
class RecordStore:
    """Immutable snapshot of every record produced by one scrape cycle."""

    records: Tuple[VoucherRecord, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    @property
    def counts_by_site(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for record in self.records:
            counts[record.site_name] = counts.get(record.site_name, 0) + 1
        return counts
