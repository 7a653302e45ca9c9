"""
Tests for per-source JSON snapshot files.

Tests verify:
- File naming and JSON field names
- Atomic replace (failed writes keep the previous file)
- Merging all files in name order
- Skipping malformed files and entries
"""
import json
from unittest.mock import patch

import pytest

from voucher_finder.errors import ParseFailure
from voucher_finder.models import VoucherRecord
from voucher_finder.services.storage import SnapshotStorage, get_data_dir


def make_record(name, site_name="Amazon", discount_pct=5):
    return VoucherRecord(
        name=name,
        discount_pct=discount_pct,
        url="https://example.test/" + name.lower().replace(" ", "-"),
        image_url=None,
        site_name=site_name,
        in_stock=True,
    )


class TestGetDataDir:
    """Tests for get_data_dir."""

    def test_uses_absolute_setting(self, data_dir):
        assert get_data_dir() == data_dir


class TestWrite:
    """Tests for SnapshotStorage.write."""

    def test_writes_json_array_with_snapshot_field_names(self, tmp_path):
        storage = SnapshotStorage(tmp_path / "data")
        path = storage.write("amazon", [make_record("Amazon Pay Gift Card")])

        assert path == tmp_path / "data" / "amazon_voucher_data.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == [{
            "name": "Amazon Pay Gift Card",
            "discount_pct": 5,
            "url": "https://example.test/amazon-pay-gift-card",
            "image_url": None,
            "sitename": "Amazon",
            "InStock": True,
        }]

    def test_replaces_previous_file(self, tmp_path):
        storage = SnapshotStorage(tmp_path)
        storage.write("amazon", [make_record("Old Card")])
        storage.write("amazon", [make_record("New Card")])

        assert [r.name for r in storage.read_all()] == ["New Card"]

    def test_failed_write_keeps_previous_file(self, tmp_path):
        storage = SnapshotStorage(tmp_path)
        storage.write("amazon", [make_record("Old Card")])

        with patch("voucher_finder.services.storage.json.dump", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                storage.write("amazon", [make_record("New Card")])

        assert [r.name for r in storage.read_all()] == ["Old Card"]
        # No temporary files left behind
        assert [p.name for p in tmp_path.iterdir()] == ["amazon_voucher_data.json"]


class TestRead:
    """Tests for SnapshotStorage.read_file / read_all."""

    def test_read_all_merges_files_in_name_order(self, tmp_path):
        storage = SnapshotStorage(tmp_path)
        storage.write("maximize_money", [make_record("Swiggy Card", "Maximize money")])
        storage.write("amazon", [make_record("Amazon Card"), make_record("Myntra Card")])

        names = [r.name for r in storage.read_all()]
        assert names == ["Amazon Card", "Myntra Card", "Swiggy Card"]

    def test_missing_directory_gives_empty(self, tmp_path):
        assert SnapshotStorage(tmp_path / "missing").read_all() == []

    def test_malformed_file_is_skipped(self, tmp_path):
        storage = SnapshotStorage(tmp_path)
        storage.write("amazon", [make_record("Amazon Card")])
        (tmp_path / "broken_voucher_data.json").write_text("{not json", encoding="utf-8")

        assert [r.name for r in storage.read_all()] == ["Amazon Card"]

    def test_read_file_rejects_non_array(self, tmp_path):
        path = tmp_path / "object.json"
        path.write_text('{"name": "x"}', encoding="utf-8")

        with pytest.raises(ParseFailure):
            SnapshotStorage(tmp_path).read_file(path)

    def test_invalid_entries_are_skipped(self, tmp_path):
        path = tmp_path / "amazon_voucher_data.json"
        path.write_text(json.dumps([
            {"name": "Good Card", "discount_pct": 4, "sitename": "Amazon", "InStock": False},
            {"discount_pct": 4, "sitename": "Amazon"},
            {"name": "   ", "sitename": "Amazon"},
            {"name": "No Site", "discount_pct": 4},
            "not an object",
        ]), encoding="utf-8")

        records = SnapshotStorage(tmp_path).read_file(path)

        assert len(records) == 1
        assert records[0].name == "Good Card"
        assert records[0].in_stock is False
        assert records[0].url == "N/A"

    def test_raw_source_values_are_coerced_like_scraped_listings(self, tmp_path):
        """Older dumps hold the API's raw discount and stock values."""
        path = tmp_path / "maximize_money_voucher_data.json"
        path.write_text(json.dumps([
            {"name": "Myntra Card", "discount_pct": "7.5", "sitename": "Maximize money", "InStock": True},
            {"name": "Swiggy Card", "discount_pct": 3, "sitename": "Maximize money", "InStock": "false"},
            {"name": None, "discount_pct": 3, "sitename": "Maximize money", "InStock": True},
            {"name": "Croma Card", "discount_pct": "lots", "sitename": "Maximize money", "InStock": 0},
        ]), encoding="utf-8")

        records = SnapshotStorage(tmp_path).read_all(known_sites=["Amazon", "Maximize money"])

        assert [(r.name, r.discount_pct, r.in_stock) for r in records] == [
            ("Myntra Card", 7, True),
            ("Swiggy Card", 3, False),
            ("Croma Card", 0, False),
        ]

    def test_unknown_sites_are_filtered(self, tmp_path):
        storage = SnapshotStorage(tmp_path)
        storage.write("amazon", [make_record("Amazon Card"), make_record("Stray", "Elsewhere")])

        records = storage.read_all(known_sites=["Amazon", "Maximize money"])
        assert [r.name for r in records] == ["Amazon Card"]

    def test_lock_and_temp_files_are_ignored(self, tmp_path):
        storage = SnapshotStorage(tmp_path)
        storage.write("amazon", [make_record("Amazon Card")])
        (tmp_path / "cycle.lock").write_text("pid=1\n")
        (tmp_path / ".amazon-abc.tmp").write_text("[]")

        assert len(storage.read_all()) == 1
