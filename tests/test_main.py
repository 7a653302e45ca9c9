"""
Tests for the FastAPI application.

Tests verify:
- Persisted snapshot files are loaded at startup
- /best-voucher returns the record, 400 without a query, 404 with a reason
- /snapshot reports what is being served
"""
from voucher_finder.config import settings
from voucher_finder.services.crawler import CycleResult, _cycle_state
from voucher_finder.services.snapshot import snapshot_holder
from voucher_finder.services.storage import SnapshotStorage


class TestHealth:
    """Tests for /health."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestStartup:
    """Tests for the application lifespan."""

    def test_loads_persisted_snapshot(self, data_dir, sample_records, monkeypatch):
        from fastapi.testclient import TestClient
        from voucher_finder.main import app

        storage = SnapshotStorage(data_dir)
        storage.write("amazon", sample_records[:1])
        storage.write("maximize_money", sample_records[1:])
        monkeypatch.setattr(settings, "SCHEDULER_ENABLED", False)

        with TestClient(app) as client:
            response = client.get("/snapshot")

        assert response.json()["records"] == 2

    def test_starts_without_snapshot_files(self, client):
        assert client.get("/snapshot").json()["records"] == 0


class TestBestVoucher:
    """Tests for /best-voucher."""

    def test_returns_best_record(self, client, sample_records):
        snapshot_holder.publish(sample_records)

        response = client.get("/best-voucher", params={"query": "amazon gift"})

        assert response.status_code == 200
        assert response.json() == {
            "name": "Amazon Pay Gift Card",
            "discount_pct": 5,
            "url": "https://www.amazon.in/dp/B01",
            "image_url": None,
            "sitename": "Amazon",
            "InStock": True,
        }

    def test_missing_query_is_bad_request(self, client, sample_records):
        snapshot_holder.publish(sample_records)

        response = client.get("/best-voucher")

        assert response.status_code == 400
        assert "query" in response.json()["message"]

    def test_empty_query_is_bad_request(self, client, sample_records):
        snapshot_holder.publish(sample_records)
        assert client.get("/best-voucher", params={"query": ""}).status_code == 400

    def test_blank_query_is_not_found(self, client, sample_records):
        snapshot_holder.publish(sample_records)

        response = client.get("/best-voucher", params={"query": "   "})

        assert response.status_code == 404
        assert response.json()["reason"] == "invalid_query"

    def test_empty_snapshot_is_not_found(self, client):
        response = client.get("/best-voucher", params={"query": "amazon"})

        assert response.status_code == 404
        body = response.json()
        assert body["reason"] == "empty_corpus"
        assert body["message"] == "Info: No data provided to search."

    def test_no_match_is_not_found(self, client, sample_records):
        snapshot_holder.publish(sample_records)

        response = client.get("/best-voucher", params={"query": "qqqq"})

        assert response.status_code == 404
        body = response.json()
        assert body["reason"] == "no_loose_match"
        assert body["best_score"] is None
        assert "qqqq" in body["message"]

    def test_below_threshold_reports_best_score(self, client, sample_records, monkeypatch):
        snapshot_holder.publish(sample_records)
        monkeypatch.setattr(settings, "MIN_MATCH_SCORE", 101)

        response = client.get("/best-voucher", params={"query": "amazon gift"})

        assert response.status_code == 404
        body = response.json()
        assert body["reason"] == "below_threshold"
        assert body["best_score"] == 100


class TestSnapshotInfo:
    """Tests for /snapshot."""

    def test_reports_counts(self, client, sample_records):
        snapshot_holder.publish(sample_records)

        body = client.get("/snapshot").json()

        assert body["records"] == 2
        assert body["records_by_site"] == {"Amazon": 1, "Maximize money": 1}
        assert body["cycle_running"] is False
        assert body["last_cycle"] is None
        assert body["created_at"]

    def test_reports_last_cycle(self, client):
        _cycle_state.last_result = CycleResult(
            trigger="schedule",
            sources_attempted=2,
            sources_succeeded=1,
            sources_failed=1,
            failed_sources=["Amazon"],
        )

        last_cycle = client.get("/snapshot").json()["last_cycle"]

        assert last_cycle["status"] == "partial"
        assert last_cycle["trigger"] == "schedule"
        assert last_cycle["failed_sources"] == ["Amazon"]
        assert last_cycle["completed_at"] is None
