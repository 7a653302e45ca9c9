"""
The in-memory record snapshot served to queries.

A RecordStore is immutable. Publishing a new one is a single reference
assignment, so a reader holding the result of current() always sees one
complete snapshot, old or new.
"""
import threading
from typing import Iterable, Optional, Sequence

from voucher_finder.models import RecordStore, VoucherRecord
from voucher_finder.services.storage import SnapshotStorage
from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)


class SnapshotHolder:
    """Holds the current RecordStore."""

    def __init__(self, initial: Optional[RecordStore] = None):
        self._current = initial if initial is not None else RecordStore()
        # Serializes publishers only; readers never take it
        self._publish_lock = threading.Lock()

    def current(self) -> RecordStore:
        return self._current

    def publish(self, records: Iterable[VoucherRecord]) -> RecordStore:
        """Replace the current snapshot with a new one built from `records`."""
        store = RecordStore(records=tuple(records))
        with self._publish_lock:
            self._current = store
        logger.info(f"Published snapshot with {len(store)} records")
        return store


# Process-wide snapshot used by the API and scheduler
snapshot_holder = SnapshotHolder()


def load_snapshot(
    storage: SnapshotStorage,
    holder: SnapshotHolder = snapshot_holder,
    known_sites: Optional[Sequence[str]] = None,
) -> RecordStore:
    """Publish whatever is persisted on disk, typically at start-up."""
    records = storage.read_all(known_sites)
    logger.info(f"Loaded {len(records)} persisted records from {storage.data_dir}")
    return holder.publish(records)


def current_snapshot() -> RecordStore:
    """Read-only view of the process-wide snapshot."""
    return snapshot_holder.current()
