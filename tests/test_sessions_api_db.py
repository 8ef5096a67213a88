import random
import uuid

import pytest

from src.services.queue_service import queue_service


@pytest.fixture()
def auth(client, migrated_db) -> dict:
    phone = f"+1555{random.randint(0, 10**9):09d}"
    r = client.post(
        "/api/v1/auth/register",
        json={"phone_number": phone, "name": "Ada", "password": "s3cret-pass"},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    return {"phone": phone, "user": body["user"], "headers": {"Authorization": f"Bearer {body['token']}"}}


def test_register_then_login_and_profile(client, auth):
    r = client.post("/api/v1/auth/register", json={"phone_number": auth["phone"], "password": "another-pass"})
    assert r.status_code == 400

    r = client.post("/api/v1/auth/login", json={"phone_number": auth["phone"], "password": "wrong-pass"})
    assert r.status_code == 401

    r = client.post("/api/v1/auth/login", json={"phone_number": auth["phone"], "password": "s3cret-pass"})
    assert r.status_code == 200
    assert r.json()["user"]["id"] == auth["user"]["id"]

    r = client.put("/api/v1/auth/profile", json={"name": "Ada L."}, headers=auth["headers"])
    assert r.status_code == 200
    assert r.json()["name"] == "Ada L."

    r = client.get("/api/v1/auth/profile", headers=auth["headers"])
    assert r.json()["phone_number"] == auth["phone"]


def test_session_lifecycle(client, auth):
    headers = auth["headers"]

    r = client.post("/api/v1/sessions", json={"title": "Build a bot", "type": "project"}, headers=headers)
    assert r.status_code == 201
    session_id = r.json()["id"]
    assert r.json()["status"] == "active"

    r = client.get("/api/v1/sessions", headers=headers)
    assert r.status_code == 200
    assert r.json()["total"] == 1
    assert r.json()["sessions"][0]["messages"] == []

    r = client.get(f"/api/v1/sessions/{session_id}", headers=headers)
    assert r.status_code == 200
    assert r.json()["title"] == "Build a bot"
    assert r.json()["artifacts"] == []

    r = client.put(f"/api/v1/sessions/{session_id}", json={"status": "completed"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["completed_at"] is not None

    r = client.get(f"/api/v1/sessions/{session_id}/stats", headers=headers)
    assert r.status_code == 200
    stats = r.json()["stats"]
    assert stats["messages"] == 0
    assert stats["duration"] >= 0

    r = client.get("/api/v1/sessions", params={"status": "completed"}, headers=headers)
    assert r.json()["total"] == 1

    r = client.delete(f"/api/v1/sessions/{session_id}", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Session archived successfully"}

    r = client.get("/api/v1/sessions", params={"status": "active"}, headers=headers)
    assert r.json()["total"] == 0


def test_sessions_are_owner_scoped(client, auth):
    r = client.post("/api/v1/sessions", json={"title": "mine"}, headers=auth["headers"])
    session_id = r.json()["id"]

    other_phone = f"+1666{random.randint(0, 10**9):09d}"
    other = client.post("/api/v1/auth/register", json={"phone_number": other_phone, "password": "password-2"}).json()
    other_headers = {"Authorization": f"Bearer {other['token']}"}

    assert client.get(f"/api/v1/sessions/{session_id}", headers=other_headers).status_code == 404
    assert client.get(f"/api/v1/sessions/{uuid.uuid4()}", headers=auth["headers"]).status_code == 404


def test_build_enqueues_github_job(client, auth, monkeypatch):
    calls = []

    def _fake_add(user_id, session_id, spec):
        calls.append((user_id, session_id, spec))
        return "job-gh-1"

    monkeypatch.setattr(queue_service, "add_github_build_job", _fake_add)

    session_id = client.post("/api/v1/sessions", json={"title": "repo"}, headers=auth["headers"]).json()["id"]

    r = client.post(
        f"/api/v1/sessions/{session_id}/build",
        json={"name": "demo", "description": "A demo", "files": [{"path": "main.py", "content": "print(1)"}]},
        headers=auth["headers"],
    )

    assert r.status_code == 202
    assert r.json() == {"job_id": "job-gh-1", "queue": "github-build"}
    user_id, sid, spec = calls[0]
    assert str(user_id) == auth["user"]["id"]
    assert str(sid) == session_id
    assert spec["files"] == [{"path": "main.py", "content": "print(1)"}]
