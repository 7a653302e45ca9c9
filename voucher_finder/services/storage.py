"""
JSON snapshot files, one per source.

Each source's records live in `<DATA_DIR>/<source_id>_voucher_data.json` as a
JSON array. A write goes to a temporary file in the same directory and is
then moved over the old file, so a failed write leaves the previous data
untouched. Reading merges every `*.json` file in the directory.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from voucher_finder.config import settings
from voucher_finder.errors import ParseFailure
from voucher_finder.models import VoucherRecord
from voucher_finder.services.normalizer import normalize_entry
from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)

# Project root (storage.py is in voucher_finder/services/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

FILE_SUFFIX = "_voucher_data.json"


def get_data_dir() -> Path:
    """Absolute snapshot directory from settings (relative paths are project-relative)."""
    data_dir = Path(settings.DATA_DIR)
    if not data_dir.is_absolute():
        data_dir = PROJECT_ROOT / data_dir
    return data_dir


class SnapshotStorage:
    """Reads and writes the per-source snapshot files."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else get_data_dir()

    def path_for(self, source_id: str) -> Path:
        return self.data_dir / f"{source_id}{FILE_SUFFIX}"

    def write(self, source_id: str, records: Iterable[VoucherRecord]) -> Path:
        """
        Replace the snapshot file of one source.

        Raises:
            OSError: If the file could not be written. The old file is kept.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        target = self.path_for(source_id)
        payload = [record.to_dict() for record in records]

        fd, tmp_name = tempfile.mkstemp(prefix=f".{source_id}-", suffix=".tmp", dir=str(self.data_dir))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=4, ensure_ascii=False)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info(f"Saved {len(payload)} records to {target}")
        return target

    def read_file(self, path: Path, known_sites: Optional[Sequence[str]] = None) -> List[VoucherRecord]:
        """
        Load records from one snapshot file.

        Entries are coerced like scraped listings. Entries without a name or
        site, or from an unknown site, are skipped.

        Raises:
            ParseFailure: If the file is not valid JSON or not a JSON array.
            OSError: If the file can't be read.
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ParseFailure(f"{path.name}: invalid JSON ({e})") from e

        if not isinstance(data, list):
            raise ParseFailure(f"{path.name}: expected a JSON array, got {type(data).__name__}")

        records: List[VoucherRecord] = []
        skipped = 0
        for entry in data:
            record = normalize_entry(entry)
            if record is None:
                skipped += 1
                continue
            if known_sites is not None and record.site_name not in known_sites:
                skipped += 1
                continue
            records.append(record)

        if skipped:
            logger.warning(f"Skipped {skipped} invalid entries in {path.name}")
        return records

    def read_all(self, known_sites: Optional[Sequence[str]] = None) -> List[VoucherRecord]:
        """
        Merge every snapshot file in the data directory, in file name order.

        Unreadable or malformed files are logged and skipped.
        """
        if not self.data_dir.is_dir():
            logger.info(f"No snapshot directory at {self.data_dir}")
            return []

        merged: List[VoucherRecord] = []
        for path in sorted(self.data_dir.glob("*.json")):
            try:
                records = self.read_file(path, known_sites)
            except (ParseFailure, OSError) as e:
                logger.error(f"Failed to load snapshot file {path.name}: {e}")
                continue
            logger.debug(f"Loaded {len(records)} records from {path.name}")
            merged.extend(records)
        return merged
