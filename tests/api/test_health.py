from __future__ import annotations

from fastapi.testclient import TestClient

from settlement.api import health


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # In tests neither Postgres nor Redis is configured
    assert data["checks"] == {"database": "not_configured", "redis": "not_configured"}


def test_ready_returns_200(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200


def test_ready_503_when_database_degraded(client: TestClient, monkeypatch) -> None:
    async def degraded() -> str:
        return "degraded"

    monkeypatch.setattr(health, "_check_database", degraded)
    assert client.get("/ready").status_code == 503
    assert client.get("/health").json()["status"] == "degraded"
