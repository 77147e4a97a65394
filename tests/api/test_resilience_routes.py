import asyncio

import pytest
from fastapi.testclient import TestClient

from storeops.api.v1.resilience import get_dead_letter_queue, get_registry
from storeops.main import app

PREFIX = "/api/v1/resilience"


async def failing():
    raise RuntimeError("boom")


@pytest.fixture
def client(registry, dlq):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_dead_letter_queue] = lambda: dlq
    yield TestClient(app)
    app.dependency_overrides.clear()


def seed_record(dlq, queue="orders"):
    return asyncio.run(dlq.add_to_dlq(queue, {"order": 5}, RuntimeError("x"), 4, 4))


def test_liveness(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_resilience_metrics_snapshot(client, registry, dlq):
    seed_record(dlq)
    for _ in range(5):
        asyncio.run(registry.fire("vision-service", failing))

    r = client.get(f"{PREFIX}/metrics")
    assert r.status_code == 200
    data = r.json()
    assert data["circuit_breakers"]["open"] == 1
    assert data["dlq"]["pending"] == 1
    assert data["health"] == "degraded"


def test_resilience_health(client):
    r = client.get(f"{PREFIX}/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_breaker_status_and_reset(client, registry):
    for _ in range(5):
        asyncio.run(registry.fire("database", failing, volume_threshold=5))

    r = client.get(f"{PREFIX}/circuit-breakers")
    assert [b["name"] for b in r.json()] == ["database"]

    r = client.get(f"{PREFIX}/circuit-breakers/database")
    assert r.json()["state"] == "open"

    r = client.post(f"{PREFIX}/circuit-breakers/database/reset")
    assert r.status_code == 200
    assert r.json()["status"]["state"] == "closed"

    assert client.get(f"{PREFIX}/circuit-breakers/nope").status_code == 404
    assert client.post(f"{PREFIX}/circuit-breakers/nope/reset").status_code == 404

    r = client.post(f"{PREFIX}/circuit-breakers/reset")
    assert r.json()["reset"] is True


def test_dlq_list_stats_and_resolve(client, dlq):
    dlq_id = seed_record(dlq)
    seed_record(dlq, queue="emails")

    r = client.get(f"{PREFIX}/dlq", params={"source_queue": "orders"})
    assert r.status_code == 200
    items = r.json()
    assert [i["id"] for i in items] == [dlq_id]
    assert items[0]["payload"] == {"order": 5}

    body = {"resolved_by": "ops@store", "resolution_type": "ignored", "notes": "duplicate"}
    r = client.post(f"{PREFIX}/dlq/{dlq_id}/resolve", json=body)
    assert r.json() == {"id": dlq_id, "resolved": True}

    r = client.post(f"{PREFIX}/dlq/{dlq_id}/resolve", json=body)
    assert r.json() == {"id": dlq_id, "resolved": False}

    r = client.get(f"{PREFIX}/dlq/stats")
    assert r.json() == {
        "orders": {"pending": 0, "resolved": 1},
        "emails": {"pending": 1, "resolved": 0},
    }


def test_resolve_validates_body(client, dlq):
    dlq_id = seed_record(dlq)
    r = client.post(
        f"{PREFIX}/dlq/{dlq_id}/resolve",
        json={"resolved_by": "ops", "resolution_type": "deleted"},
    )
    assert r.status_code == 422
