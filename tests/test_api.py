from datetime import datetime, timezone
import pytest
from httpx import AsyncClient, ASGITransport
from appscope.db.database import Database, get_database
from appscope.main import app


@pytest.mark.asyncio
async def test_health(async_client):
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_track_requires_write_key(async_client, read_headers):
    payload = {"app_id": "app", "event": "$open", "user_id": "u1"}

    missing = await async_client.post("/api/track", json=payload)
    wrong = await async_client.post("/api/track", json=payload, headers={"X-Write-Key": "nope"})
    read_key = await async_client.post("/api/track", json=payload, headers={"X-Write-Key": read_headers["X-Read-Key"]})

    for response in (missing, wrong, read_key):
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_stats_require_read_key(async_client, write_headers):
    response = await async_client.get("/api/apps", headers={"X-Read-Key": write_headers["X-Write-Key"]})
    assert response.status_code == 401

    response = await async_client.get("/api/stats/dau?app_id=app")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_track_and_query(async_client, write_headers, read_headers):
    for user_id in ("u1", "u1", "u2"):
        response = await async_client.post(
            "/api/track",
            json={"app_id": "app", "event": "$open", "user_id": user_id, "properties": {"v": "1.2"}},
            headers=write_headers
        )
        assert response.status_code == 200
        assert response.json() == {"success": True}

    await async_client.post(
        "/api/track",
        json={"app_id": "app", "event": "$install", "user_id": "u1"},
        headers=write_headers
    )

    today = datetime.now(timezone.utc).date().isoformat()

    dau = await async_client.get("/api/stats/dau", params={"app_id": "app", "days": 7}, headers=read_headers)
    assert dau.status_code == 200
    assert dau.json() == {"data": [{"date": today, "dau": 2}]}

    installs = await async_client.get("/api/stats/installs", params={"app_id": "app"}, headers=read_headers)
    assert installs.json() == {"total": 1, "data": [{"date": today, "installs": 1}]}

    apps = await async_client.get("/api/apps", headers=read_headers)
    assert apps.json() == {"apps": [{"app_id": "app", "dau_today": 2, "total_installs": 1}]}

    retention = await async_client.get("/api/stats/retention", params={"app_id": "app"}, headers=read_headers)
    assert retention.json() == {
        "data": [{"cohort_date": today, "day0": 2, "day1": 0.0, "day7": 0.0, "day30": 0.0}]
    }


@pytest.mark.asyncio
async def test_feedback_round_trip(async_client, write_headers, read_headers):
    response = await async_client.post(
        "/api/feedback",
        json={"app_id": "app", "content": "Dark mode please", "contact": "x@y.z"},
        headers=write_headers
    )
    assert response.status_code == 200

    response = await async_client.get("/api/feedbacks", params={"app_id": "app"}, headers=read_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["content"] == "Dark mode please"
    assert data[0]["contact"] == "x@y.z"
    assert data[0]["user_id"] is None
    assert isinstance(data[0]["id"], int)

    response = await async_client.get("/api/feedbacks", params={"app_id": "app", "limit": 0}, headers=read_headers)
    assert response.json() == {"data": []}


@pytest.mark.asyncio
async def test_unknown_app_returns_empty(async_client, read_headers):
    params = {"app_id": "nonexistent-app"}

    dau = await async_client.get("/api/stats/dau", params=params, headers=read_headers)
    installs = await async_client.get("/api/stats/installs", params=params, headers=read_headers)
    retention = await async_client.get("/api/stats/retention", params=params, headers=read_headers)
    feedbacks = await async_client.get("/api/feedbacks", params=params, headers=read_headers)

    assert dau.json() == {"data": []}
    assert installs.json() == {"total": 0, "data": []}
    assert retention.json() == {"data": []}
    assert feedbacks.json() == {"data": []}


@pytest.mark.asyncio
async def test_blank_app_id_rejected(async_client, read_headers):
    response = await async_client.get("/api/stats/dau", params={"app_id": "  "}, headers=read_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "app_id must not be blank"}


@pytest.mark.asyncio
async def test_invalid_payloads_rejected(async_client, write_headers):
    missing_user = await async_client.post(
        "/api/track", json={"app_id": "app", "event": "$open"}, headers=write_headers
    )
    empty_content = await async_client.post(
        "/api/feedback", json={"app_id": "app", "content": ""}, headers=write_headers
    )

    assert missing_user.status_code == 422
    assert empty_content.status_code == 422


@pytest.mark.asyncio
async def test_track_accepts_empty_strings(async_client, write_headers, read_headers):
    response = await async_client.post(
        "/api/track", json={"app_id": "", "event": "", "user_id": ""}, headers=write_headers
    )
    assert response.status_code == 200

    apps = await async_client.get("/api/apps", headers=read_headers)
    assert apps.json() == {"apps": [{"app_id": "", "dau_today": 0, "total_installs": 0}]}


@pytest.mark.asyncio
async def test_storage_error_maps_to_500(tmp_path, write_headers, read_headers):
    disconnected = Database(url=f"sqlite+aiosqlite:///{tmp_path / 'down.db'}")
    app.dependency_overrides[get_database] = lambda: disconnected
    transport = ASGITransport(app=app)

    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            write = await client.post(
                "/api/track",
                json={"app_id": "app", "event": "$open", "user_id": "u1"},
                headers=write_headers
            )
            read = await client.get("/api/apps", headers=read_headers)
    finally:
        app.dependency_overrides.clear()

    assert write.status_code == 500
    assert write.json() == {"error": "Database error"}
    assert read.status_code == 500


@pytest.mark.asyncio
async def test_metrics_exposed(async_client, write_headers):
    await async_client.post(
        "/api/track",
        json={"app_id": "app", "event": "signup", "user_id": "u1"},
        headers=write_headers
    )

    response = await async_client.get("/metrics/")

    assert response.status_code == 200
    assert "events_received_total" in response.text


@pytest.mark.asyncio
async def test_request_id_echoed(async_client):
    given = await async_client.get("/health", headers={"X-Request-ID": "req-123"})
    generated = await async_client.get("/health")

    assert given.headers["X-Request-ID"] == "req-123"
    assert len(generated.headers["X-Request-ID"]) == 32
