from __future__ import annotations

import json


def test_app_smoke_routes(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"

    r = client.get("/stats")
    assert r.status_code == 200
    assert r.json() == {"totalVideos": 0, "totalViews": 0, "totalRatings": 0, "streamers": 0, "viewers": 0}

    r = client.get("/no-such-route")
    assert r.status_code == 404
    assert "error" in r.json()

    r = client.options(
        "/videos",
        headers={"Origin": "http://example.com", "Access-Control-Request-Method": "GET"},
    )
    assert r.headers.get("access-control-allow-origin") == "*"


def test_lifespan_seeds_creator_and_flushes_snapshot(sandbox_project, monkeypatch):
    from fastapi.testclient import TestClient

    import app as app_module

    monkeypatch.setenv("SEED_DEFAULT_CREATOR", "true")
    with TestClient(app_module.create_app()) as c:
        users = c.get("/local/users").json()["users"]
        assert [u["username"] for u in users] == ["ade"]
        assert "password_hash" not in users[0]

    snapshot = sandbox_project / "data" / "kv-store.json"
    doc = json.loads(snapshot.read_text(encoding="utf-8"))
    assert doc["user:username:ade"] == users[0]["id"]

    # Restart: the seeded user is loaded from the snapshot, not seeded again.
    with TestClient(app_module.create_app()) as c:
        r = c.post("/auth/login", json={"username": "ade", "password": "Password123"})
        assert r.status_code == 200
        assert r.json()["user"]["id"] == users[0]["id"]
        assert len(c.get("/local/users").json()["users"]) == 1


def test_in_memory_mode_starts_empty_on_restart(sandbox_project, monkeypatch):
    from fastapi.testclient import TestClient

    import app as app_module

    monkeypatch.setenv("KV_PERSIST", "false")
    with TestClient(app_module.create_app()) as c:
        r = c.post(
            "/local/users",
            json={"username": "tmp", "email": "tmp@example.com", "password": "x", "role": "viewer"},
        )
        assert r.status_code == 200

    with TestClient(app_module.create_app()) as c:
        assert c.get("/local/users").json() == {"users": []}
    assert not (sandbox_project / "data" / "kv-store.json").exists()
