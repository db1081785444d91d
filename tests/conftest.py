from __future__ import annotations

from pathlib import Path
import sys
from typing import Iterator


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
# This avoids ModuleNotFoundError for imports like `import persistence...` under pytest import modes
# that don't automatically prepend the cwd/rootdir to sys.path.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def sandbox_project(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """
    Redirect the snapshot file and media dir to a temp project directory so tests never touch real ./data.
    """
    import persistence.paths as paths

    monkeypatch.setattr(paths, "project_root", lambda: tmp_path)

    monkeypatch.setenv("KV_PERSIST", "true")
    monkeypatch.setenv("KV_STORE_PATH", str(tmp_path / "data" / "kv-store.json"))
    monkeypatch.setenv("KV_SAVE_INTERVAL_SECONDS", "30")
    monkeypatch.setenv("MEDIA_DIR", str(tmp_path / "videos"))
    monkeypatch.setenv("SEED_DEFAULT_CREATOR", "false")
    monkeypatch.setenv("DEBUG_LOG_REQUESTS", "false")
    monkeypatch.setenv("LOCAL_BASE_URL", "http://testserver")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)
    return tmp_path


@pytest.fixture
def client(sandbox_project: Path) -> Iterator["TestClient"]:
    from fastapi.testclient import TestClient

    import app as app_module

    # Entering the client runs the lifespan: store open, autosave, final save.
    with TestClient(app_module.create_app()) as c:
        yield c


@pytest.fixture
def login_as(client):
    """Sign up a user with the given role and return bearer auth headers."""

    def _login(username: str, role: str, password: str = "pw-123456") -> dict[str, str]:
        r = client.post(
            "/auth/signup",
            json={"username": username, "email": f"{username}@example.com", "password": password, "role": role},
        )
        assert r.status_code == 200, r.text
        r = client.post("/auth/login", json={"username": username, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login
