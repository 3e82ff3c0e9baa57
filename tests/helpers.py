# tests/helpers.py

from __future__ import annotations

from datetime import datetime

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}


def device(device_id: str) -> dict:
    return {"X-Device-Id": device_id}


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def create_task(client, title: str = "Read every day", days: int = 30, headers=None, **extra) -> dict:
    resp = client.post("/api/tasks/", json={"title": title, "total_days": days, **extra}, headers=headers or {})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def register(client, username: str = "alice", email: str = "alice@example.com",
             password: str = "secret123", device_id: str | None = None) -> dict:
    body = {"username": username, "email": email, "password": password}
    if device_id is not None:
        body["device_id"] = device_id
    resp = client.post("/api/auth/register", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)
