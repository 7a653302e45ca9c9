"""
Pytest configuration and fixtures for Voucher Finder tests.
"""
import random
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from voucher_finder.config import settings
from voucher_finder.main import app
from voucher_finder.models import VoucherRecord
from voucher_finder.scrapers.base import RequestPolicy
from voucher_finder.services.crawler import _cycle_state
from voucher_finder.services.snapshot import snapshot_holder


@pytest.fixture(autouse=True)
def reset_cycle_state():
    """Reset global cycle state and snapshot before each test to ensure test isolation."""
    _cycle_state.is_running = False
    _cycle_state.current_source = None
    _cycle_state.last_result = None
    snapshot_holder.publish([])

    yield

    _cycle_state.is_running = False
    _cycle_state.current_source = None
    _cycle_state.last_result = None
    snapshot_holder.publish([])


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point DATA_DIR at a temporary directory."""
    path = tmp_path / "voucher_data_dump"
    monkeypatch.setattr(settings, "DATA_DIR", str(path))
    return path


@pytest.fixture
def client(data_dir, monkeypatch):
    """Create a test client for the FastAPI application, without the scheduler."""
    monkeypatch.setattr(settings, "SCHEDULER_ENABLED", False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def fast_policy():
    """Deterministic request policy that never really sleeps."""
    return RequestPolicy(rng=random.Random(42), sleep=AsyncMock())


@pytest.fixture
def sample_records():
    """Records from the documented matching example."""
    return [
        VoucherRecord(
            name="Amazon Pay Gift Card",
            discount_pct=5,
            url="https://www.amazon.in/dp/B01",
            image_url=None,
            site_name="Amazon",
            in_stock=True,
        ),
        VoucherRecord(
            name="Amazon Shopping Voucher",
            discount_pct=12,
            url="https://www.maximize.money/gift-cards/amazon/7",
            image_url=None,
            site_name="Maximize money",
            in_stock=False,
        ),
    ]


def make_response(status_code=200, url="https://example.test/", **kwargs) -> httpx.Response:
    """Build a real httpx.Response bound to a request, so raise_for_status works."""
    return httpx.Response(status_code, request=httpx.Request("GET", url), **kwargs)


def make_mock_client(*outcomes) -> AsyncMock:
    """Async client mock whose get() returns/raises `outcomes` in order."""
    mock_client = AsyncMock()
    mock_client.get = AsyncMock(side_effect=list(outcomes))
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    return mock_client


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def client_factory():
    return make_mock_client
