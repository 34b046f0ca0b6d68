"""
Test HTTP endpoints.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from burn_tracker.api.main import create_app
from burn_tracker.api.routes.burn import with_freshness
from burn_tracker.core.exceptions import JobAlreadyRunningError
from burn_tracker.models.burn import BurnRecord, BurnWindow

from tests.helpers import TOKEN_ADDRESS, FakeBurnStore


class FakeScheduler:
    def __init__(self, busy=False):
        self.busy = busy
        self.triggered = 0

    def trigger_manual_run(self):
        if self.busy:
            raise JobAlreadyRunningError()
        self.triggered += 1

    def get_status(self):
        return {"status": "waiting", "job_running": self.busy}


class FakePool:
    def __init__(self):
        self.probed = False

    def snapshot(self):
        return {"healthy_count": 1, "endpoints": [{"url": "https://rpc.example", "healthy": True}]}

    async def health_check(self):
        self.probed = True
        return self.snapshot()


def make_record(last_updated=None):
    return BurnRecord(
        address=TOKEN_ADDRESS,
        symbol="abc",
        decimals=18,
        latest_block=2000,
        burns={BurnWindow.FIVE_MIN: 5.0, BurnWindow.TWENTY_FOUR_HOURS: 6.0},
        last_updated=last_updated or datetime.now(timezone.utc),
    )


@pytest.fixture
def store():
    return FakeBurnStore()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def pool():
    return FakePool()


@pytest.fixture
def client(store, scheduler, pool, token_registry):
    app = create_app(use_lifespan=False)
    app.state.burn_store = store
    app.state.tokens = token_registry
    app.state.scheduler = scheduler
    app.state.provider_pool = pool
    return TestClient(app)


def test_health(client):
    """Test liveness endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_burn_data_unavailable_before_first_run(client):
    """Test 503 when no token has a stored record."""
    response = client.get("/burn-data")

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "BURN_DATA_UNAVAILABLE"


def test_burn_data_returns_stored_records(client, store):
    """Test stored records are returned keyed by symbol with freshness."""
    store.documents["abc"] = make_record().to_document()

    response = client.get("/burn-data")

    assert response.status_code == 200
    data = response.json()["data"]
    assert list(data) == ["abc"]
    assert data["abc"]["burn5min"] == 5.0
    assert data["abc"]["burn24h"] == 6.0
    assert data["abc"]["burn1h"] == 0
    assert data["abc"]["address"] == TOKEN_ADDRESS
    assert data["abc"]["stale"] is False
    assert data["abc"]["ageSeconds"] >= 0


def test_single_token_lookup_is_case_insensitive(client, store):
    """Test per-token lookup ignores symbol case."""
    store.documents["abc"] = make_record().to_document()

    response = client.get("/burn-data/ABC")

    assert response.status_code == 200
    assert response.json()["data"]["symbol"] == "abc"


def test_unknown_token_is_404(client):
    """Test a symbol outside the token table is rejected."""
    response = client.get("/burn-data/nope")

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "UNKNOWN_TOKEN"


def test_known_token_without_data_is_404(client):
    """Test a tracked token with no record yet."""
    response = client.get("/burn-data/xyz")

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "BURN_DATA_NOT_FOUND"


def test_list_tokens(client):
    """Test the token table listing."""
    response = client.get("/tokens")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 2
    assert {token["symbol"] for token in data["tokens"]} == {"abc", "xyz"}


def test_status_uses_snapshot_unless_probe_requested(client, pool):
    """Test status reports scheduler and provider state."""
    response = client.get("/status")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["scheduler"]["status"] == "waiting"
    assert data["providers"]["healthy_count"] == 1
    assert data["storage"]["status"] == "healthy"
    assert pool.probed is False

    client.get("/status", params={"probe": "true"})
    assert pool.probed is True


def test_trigger_job_accepted(client, scheduler):
    """Test a manual trigger is accepted."""
    response = client.post("/trigger-job")

    assert response.status_code == 202
    assert response.json()["data"]["started"] is True
    assert scheduler.triggered == 1


def test_trigger_job_conflict_when_running(client, scheduler):
    """Test a manual trigger during an active run is rejected."""
    scheduler.busy = True

    response = client.post("/trigger-job")

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "JOB_ALREADY_RUNNING"


def test_with_freshness_marks_old_records_stale():
    """Test records older than the staleness threshold are flagged."""
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    fresh = make_record(last_updated=now - timedelta(minutes=4)).to_document()
    old = make_record(last_updated=now - timedelta(hours=2)).to_document()

    assert with_freshness(fresh, now)["stale"] is False
    assert with_freshness(fresh, now)["ageSeconds"] == 240.0
    assert with_freshness(old, now)["stale"] is True
    assert with_freshness({"address": TOKEN_ADDRESS}, now)["stale"] is True
