"""
Services Package

Normalization, matching, persistence and the scrape cycle.

Exports:
    - normalize_listing / normalize_listings: RawListing -> VoucherRecord
    - best_match: Best voucher for a query
    - normalize_text: Text normalization used for fuzzy scoring
    - NotFound / NotFoundReason: No-match outcomes
    - VoucherService: Query facade over the current snapshot
    - SnapshotStorage: Per-source JSON snapshot files
    - SnapshotHolder / snapshot_holder / current_snapshot: In-memory snapshot
    - run_cycle / run_cycle_sync: Run a complete scrape cycle
    - CycleResult: Dataclass for cycle results
    - get_registered_sources: Get list of registered source names
"""
from voucher_finder.services.normalizer import normalize_entry, normalize_listing, normalize_listings
from voucher_finder.services.storage import SnapshotStorage
from voucher_finder.services.snapshot import (
    SnapshotHolder,
    current_snapshot,
    load_snapshot,
    snapshot_holder,
)
from voucher_finder.services.matching import (
    DEFAULT_MIN_SCORE,
    NotFound,
    NotFoundReason,
    VoucherService,
    best_match,
    normalize_text,
)
from voucher_finder.services.crawler import (
    ADAPTER_REGISTRY,
    CycleResult,
    get_registered_sources,
    run_cycle,
    run_cycle_sync,
)

__all__ = [
    # Normalization
    "normalize_entry",
    "normalize_listing",
    "normalize_listings",
    # Snapshot
    "SnapshotStorage",
    "SnapshotHolder",
    "snapshot_holder",
    "current_snapshot",
    "load_snapshot",
    # Matching
    "DEFAULT_MIN_SCORE",
    "NotFound",
    "NotFoundReason",
    "VoucherService",
    "best_match",
    "normalize_text",
    # Cycle
    "ADAPTER_REGISTRY",
    "CycleResult",
    "get_registered_sources",
    "run_cycle",
    "run_cycle_sync",
]
