"""Tests for the FastAPI server."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from adaptive_router.api.server import app, get_router
from adaptive_router.config import RouterConfig
from adaptive_router.models import UserProfile
from adaptive_router.router import AdaptiveRouter

pytestmark = pytest.mark.anyio

MORNING = "2026-03-02T10:00:00"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def router(tmp_path: Path) -> Iterator[AdaptiveRouter]:
    r = AdaptiveRouter(RouterConfig(data_dir=tmp_path))
    r.profiles.create_profile(UserProfile(user_id="u1"))
    app.dependency_overrides[get_router] = lambda: r
    yield r
    app.dependency_overrides.clear()


@pytest.fixture
async def client(router: AdaptiveRouter) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"
    assert "uptime_seconds" in data


async def test_classify(client: AsyncClient) -> None:
    response = await client.post("/api/classify", json={"text": "My password is hunter2"})
    assert response.status_code == 200
    data = response.json()
    assert data["privacy_sensitive"] is True


async def test_route(client: AsyncClient) -> None:
    response = await client.post(
        "/api/route",
        json={"user_id": "u1", "text": "Write an essay about dogs", "timestamp": MORNING},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["worker_id"] == "gpt-4"
    assert data["category"] == "write"
    assert data["decision_id"].startswith("dec-")
    assert data["trail"][0]["stage"] == "baseline"
    assert data["fallback_chain"]


async def test_route_unknown_user(client: AsyncClient) -> None:
    response = await client.post("/api/route", json={"user_id": "ghost", "text": "Write"})
    assert response.status_code == 404


async def test_route_missing_text(client: AsyncClient) -> None:
    response = await client.post("/api/route", json={"user_id": "u1"})
    assert response.status_code == 422


async def test_outcome_recorded_once(client: AsyncClient) -> None:
    routed = await client.post(
        "/api/route",
        json={"user_id": "u1", "text": "Write an essay about dogs", "timestamp": MORNING},
    )
    decision_id = routed.json()["decision_id"]

    response = await client.post(
        f"/api/decisions/{decision_id}/outcome",
        json={"success": True, "latency_ms": 850, "rating": 4},
    )
    assert response.status_code == 200
    assert response.json() == {
        "decision_id": decision_id,
        "worker_id": "gpt-4",
        "recorded": True,
    }

    again = await client.post(f"/api/decisions/{decision_id}/outcome", json={"success": False})
    assert again.status_code == 409

    listed = await client.get("/api/decisions", params={"user_id": "u1"})
    assert listed.status_code == 200
    data = listed.json()
    assert data["count"] == 1
    assert data["decisions"][0]["outcome"]["rating"] == 4


async def test_outcome_validation(client: AsyncClient) -> None:
    response = await client.post(
        "/api/decisions/dec-x/outcome", json={"success": True, "rating": 9}
    )
    assert response.status_code == 422


async def test_outcome_unknown_decision(client: AsyncClient) -> None:
    response = await client.post("/api/decisions/dec-missing/outcome", json={"success": True})
    assert response.status_code == 404


async def test_drift_and_suggestions_empty(client: AsyncClient) -> None:
    drift = await client.post("/api/drift", json={"user_id": "u1"})
    assert drift.status_code == 200
    assert drift.json() == {"drift": [], "count": 0}

    generated = await client.post("/api/suggestions", json={"user_id": "u1", "window": "2w"})
    assert generated.status_code == 200
    assert generated.json()["count"] == 0

    pending = await client.get("/api/suggestions")
    assert pending.json() == {"suggestions": [], "count": 0}


async def test_drift_bad_window(client: AsyncClient) -> None:
    response = await client.post("/api/drift", json={"user_id": "u1", "window": "soon"})
    assert response.status_code == 422


async def test_drift_unknown_user(client: AsyncClient) -> None:
    response = await client.post("/api/drift", json={"user_id": "ghost"})
    assert response.status_code == 404


async def test_unknown_suggestion(client: AsyncClient) -> None:
    assert (await client.post("/api/suggestions/999/accept")).status_code == 404
    assert (await client.post("/api/suggestions/999/reject")).status_code == 404


async def test_suggestion_stats(client: AsyncClient) -> None:
    response = await client.get("/api/suggestions/stats", params={"user_id": "u1"})
    assert response.status_code == 200
    assert response.json() == {
        "generated": 0,
        "pending": 0,
        "accepted": 0,
        "rejected": 0,
        "applied": 0,
        "acceptance_rate": 0.0,
    }
