"""
Scrape Cycle Orchestrator for the Voucher Finder.

Runs every source adapter, normalizes what they return, persists each
source's records and publishes the merged set as the new snapshot.

Key features:
- Sequential execution, one source after another
- Error isolation: one adapter failure doesn't stop others
- Fail-closed persistence: a source's file is only replaced by a successful,
  non-empty result
- Non-reentrant: an in-process flag plus the cycle lock file
  (server schedule, CLI, cronjob)
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from voucher_finder.errors import CycleInProgressError
from voucher_finder.models import RawListings, RecordStore
from voucher_finder.scrapers import AmazonAdapter, MaximizeMoneyAdapter, SourceAdapter
from voucher_finder.services.lock import LOCK_FILE_NAME, CycleLock
from voucher_finder.services.normalizer import normalize_listings
from voucher_finder.services.snapshot import SnapshotHolder, snapshot_holder
from voucher_finder.services.storage import SnapshotStorage
from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)


def cycle_lock(storage: SnapshotStorage) -> CycleLock:
    """The lock guarding a storage's data directory."""
    return CycleLock(storage.data_dir / LOCK_FILE_NAME)


# =============================================================================
# Adapter Registry
# =============================================================================

# Site name -> adapter factory. Site names end up in VoucherRecord.site_name.
ADAPTER_REGISTRY: Dict[str, Callable[[], SourceAdapter]] = {
    AmazonAdapter.site_name: AmazonAdapter,
    MaximizeMoneyAdapter.site_name: MaximizeMoneyAdapter,
}


def get_registered_sources() -> List[str]:
    """Get list of all registered source (site) names."""
    return list(ADAPTER_REGISTRY.keys())


def build_adapters() -> List[SourceAdapter]:
    """Instantiate one adapter per registered source."""
    return [factory() for factory in ADAPTER_REGISTRY.values()]


@dataclass
class CycleResult:
    """Bookkeeping for one scrape cycle.

    A source counts as succeeded when its adapter returned, even with no
    listings; it counts as failed when the adapter raised.
    """

    trigger: str = "manual"
    sources_attempted: int = 0
    sources_succeeded: int = 0
    sources_failed: int = 0
    total_records: int = 0
    records_by_source: Dict[str, int] = field(default_factory=dict)
    failed_sources: List[str] = field(default_factory=list)
    unpersisted_sources: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __str__(self) -> str:
        return (
            f"CycleResult(trigger={self.trigger}, attempted={self.sources_attempted}, "
            f"ok={self.sources_succeeded}, failed={self.sources_failed}, "
            f"records={self.total_records}, {self.duration_seconds:.1f}s)"
        )

    def record_failure(self, source_name: str) -> None:
        self.sources_failed += 1
        self.failed_sources.append(source_name)

    def record_success(self, source_name: str, record_count: int) -> None:
        self.sources_succeeded += 1
        self.records_by_source[source_name] = record_count

    @property
    def is_success(self) -> bool:
        """Every attempted source returned."""
        return self.sources_attempted > 0 and not self.sources_failed

    @property
    def is_partial_success(self) -> bool:
        """Some sources returned, some raised."""
        return bool(self.sources_failed) and bool(self.sources_succeeded)

    @property
    def status_text(self) -> str:
        if not self.sources_attempted:
            return "no sources"
        if self.is_success:
            return "success"
        return "partial" if self.is_partial_success else "failed"


@dataclass
class CycleState:
    """What this process's scrape cycle is doing right now."""

    is_running: bool = False
    current_source: Optional[str] = None
    last_result: Optional[CycleResult] = None


_cycle_state = CycleState()


def get_cycle_state() -> CycleState:
    return _cycle_state


def get_last_cycle_result() -> Optional[CycleResult]:
    """Result of the most recent finished cycle in this process."""
    return _cycle_state.last_result


def is_cycle_running(storage: Optional[SnapshotStorage] = None) -> bool:
    """True if a cycle runs in this process or holds the lock file."""
    if _cycle_state.is_running:
        return True
    return cycle_lock(storage or SnapshotStorage()).is_held()


async def run_single_adapter(adapter: SourceAdapter) -> Tuple[RawListings, Optional[str]]:
    """
    Run one adapter, turning any exception into an error message.

    Returns:
        (raw listings, None) on success, ([], "ExcType: message") on failure.
    """
    try:
        return await adapter.fetch_all(), None
    except Exception as e:
        message = f"{type(e).__name__}: {e}"
        logger.error(f"Adapter failed for {adapter.site_name}: {message}")
        return [], message


async def persist_source(storage: SnapshotStorage, source_id: str, records: Sequence, result: CycleResult) -> bool:
    """
    Write a source's records, keeping the previous file when there is
    nothing to write or the write fails. The write runs in a worker thread.

    Returns:
        True if the file was replaced.
    """
    if not records:
        logger.warning(f"No records for {source_id}, keeping previous snapshot file")
        result.unpersisted_sources.append(source_id)
        return False
    try:
        await asyncio.to_thread(storage.write, source_id, records)
    except OSError as e:
        logger.error(f"Failed to persist {source_id}, previous file kept: {e}")
        result.unpersisted_sources.append(source_id)
        return False
    return True


async def run_cycle(
    trigger: str = "manual",
    adapters: Optional[Sequence[SourceAdapter]] = None,
    storage: Optional[SnapshotStorage] = None,
    holder: SnapshotHolder = snapshot_holder,
) -> RecordStore:
    """
    Run one complete scrape cycle and publish its records.

    1. Takes the cycle lock (in-process flag plus lock file)
    2. Runs each adapter in turn with error isolation
    3. Normalizes each source's listings
    4. Persists each source's records to its own file
    5. Publishes the merged records as the new snapshot

    Args:
        trigger: 'startup', 'schedule', 'cli' or 'manual'
        adapters: Adapters to run, defaults to every registered source
        storage: Snapshot file storage, defaults to DATA_DIR
        holder: Snapshot holder to publish to

    Returns:
        The published RecordStore.

    Raises:
        CycleInProgressError: If another cycle is already running.
        OSError: If the lock file can't be created.
    """
    storage = storage or SnapshotStorage()
    adapters = build_adapters() if adapters is None else list(adapters)
    lock = cycle_lock(storage)

    if _cycle_state.is_running:
        raise CycleInProgressError("A scrape cycle is already running in this process")

    # Claimed before the lock file so a second coroutine can't slip in while
    # acquire runs in its worker thread
    _cycle_state.is_running = True
    _cycle_state.current_source = None
    try:
        acquired = await asyncio.to_thread(lock.acquire, trigger)
    except OSError:
        _cycle_state.is_running = False
        raise
    if not acquired:
        _cycle_state.is_running = False
        owner = lock.holder()
        raise CycleInProgressError(
            f"A scrape cycle is already running: {owner.describe() if owner else 'unknown owner'}"
        )

    started = time.monotonic()
    result = CycleResult(trigger=trigger, started_at=datetime.now(timezone.utc))
    logger.info(f"Starting scrape cycle for {len(adapters)} sources (trigger: {trigger})")

    try:
        merged = []
        for adapter in adapters:
            source_name = adapter.site_name
            result.sources_attempted += 1
            _cycle_state.current_source = source_name

            logger.info(f"Running adapter for {source_name}")
            listings, error = await run_single_adapter(adapter)
            if error:
                result.record_failure(source_name)
                continue

            records = normalize_listings(listings, source_name)
            if len(records) < len(listings):
                logger.info(f"{source_name}: dropped {len(listings) - len(records)} listings without a name")

            result.record_success(source_name, len(records))
            merged.extend(records)
            await persist_source(storage, adapter.source_id, records, result)

        store = holder.publish(merged)

        result.total_records = len(store)
        result.duration_seconds = time.monotonic() - started
        result.completed_at = datetime.now(timezone.utc)
        _cycle_state.last_result = result
        _log_cycle_summary(result)
        return store

    finally:
        _cycle_state.is_running = False
        _cycle_state.current_source = None
        await asyncio.to_thread(lock.release)


def run_cycle_sync(trigger: str = "cli", **kwargs) -> RecordStore:
    """Blocking wrapper around run_cycle for the CLI."""
    return asyncio.run(run_cycle(trigger, **kwargs))


def _log_cycle_summary(result: CycleResult) -> None:
    per_source = ", ".join(f"{name}={count}" for name, count in result.records_by_source.items()) or "none"
    logger.info(
        f"Scrape cycle {result.status_text} (trigger: {result.trigger}): "
        f"{result.sources_succeeded}/{result.sources_attempted} sources, "
        f"{result.total_records} records published in {result.duration_seconds:.1f}s"
    )
    logger.info(f"Records per source: {per_source}")
    if result.failed_sources:
        logger.warning(f"Failed sources: {', '.join(result.failed_sources)}")
    if result.unpersisted_sources:
        logger.warning(f"Not persisted (previous file kept): {', '.join(result.unpersisted_sources)}")
