# tests/test_auth_api.py

from __future__ import annotations

from .helpers import bearer, create_task, device, register


def test_register_returns_token_and_user(client) -> None:
    body = register(client, username="  alice ", email="Alice@Example.COM")
    assert body["token"]
    assert body["user"]["username"] == "alice"
    assert body["user"]["email"] == "alice@example.com"
    assert body["migrated_count"] == 0


def test_register_rejects_duplicates_and_bad_input(client) -> None:
    register(client)

    dup_name = client.post("/api/auth/register", json={"username": "alice", "email": "x@example.com", "password": "secret123"})
    dup_mail = client.post("/api/auth/register", json={"username": "alice2", "email": "ALICE@example.com", "password": "secret123"})
    short_pw = client.post("/api/auth/register", json={"username": "carol", "email": "c@example.com", "password": "12345"})
    bad_mail = client.post("/api/auth/register", json={"username": "carol", "email": "not-an-email", "password": "secret123"})
    missing = client.post("/api/auth/register", json={"email": "c@example.com", "password": "secret123"})

    assert dup_name.status_code == 400
    assert dup_name.json()["error"] == "Username or email already in use"
    assert dup_mail.status_code == 400
    assert short_pw.status_code == 400
    assert bad_mail.status_code == 400
    assert missing.status_code == 400


def test_register_race_on_unique_columns_is_400(client, monkeypatch) -> None:
    register(client)
    # both requests pass the pre-check, the second one trips the unique index
    monkeypatch.setattr("routers.auth._find_existing", lambda db, username, email: None)

    resp = client.post("/api/auth/register", json={"username": "alice", "email": "alice@example.com", "password": "secret123"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Username or email already in use"}

    # session was rolled back and keeps working
    assert register(client, username="bob", email="bob@example.com")["user"]["username"] == "bob"


def test_login(client) -> None:
    register(client)

    ok = client.post("/api/auth/login", json={"email": "ALICE@example.com", "password": "secret123"})
    assert ok.status_code == 200
    assert ok.json()["user"]["username"] == "alice"

    wrong = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
    unknown = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "secret123"})
    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json()["error"] == unknown.json()["error"] == "Incorrect email or password"


def test_me_requires_valid_token(client) -> None:
    token = register(client)["token"]

    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers=bearer("garbage")).status_code == 401

    me = client.get("/api/auth/me", headers=bearer(token))
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "alice@example.com"
    assert me.json()["user"]["last_login_at"] is not None


def test_register_migrates_anonymous_device_tasks(client) -> None:
    create_task(client, title="one", headers=device("dev-1"))
    create_task(client, title="two", headers=device("dev-1"))
    create_task(client, title="elsewhere", headers=device("dev-2"))

    body = register(client, device_id="dev-1")
    assert body["migrated_count"] == 2

    mine = client.get("/api/tasks/", headers=bearer(body["token"])).json()
    assert sorted(t["title"] for t in mine["data"]) == ["one", "two"]

    # the device no longer sees them anonymously
    assert client.get("/api/tasks/", headers=device("dev-1")).json()["pagination"]["total"] == 0
    assert client.get("/api/tasks/", headers=device("dev-2")).json()["pagination"]["total"] == 1


def test_login_migrates_tasks_created_since_registration(client) -> None:
    register(client, device_id="dev-1")
    create_task(client, title="later", headers=device("dev-1"))

    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret123", "device_id": "dev-1"})
    assert resp.json()["migrated_count"] == 1


def test_migrate_tasks_endpoint(client) -> None:
    token = register(client)["token"]
    create_task(client, headers=device("dev-9"))

    assert client.post("/api/auth/migrate-tasks", json={"device_id": "dev-9"}).status_code == 401
    assert client.post("/api/auth/migrate-tasks", json={}, headers=bearer(token)).status_code == 400

    first = client.post("/api/auth/migrate-tasks", json={"device_id": "dev-9"}, headers=bearer(token))
    again = client.post("/api/auth/migrate-tasks", json={"device_id": "dev-9"}, headers=bearer(token))
    assert first.json()["migrated_count"] == 1
    assert again.json()["migrated_count"] == 0


def test_tasks_created_while_logged_in_belong_to_the_user(client) -> None:
    token = register(client)["token"]
    task = create_task(client, headers={**bearer(token), **device("dev-1")})
    assert task["user_id"] is not None

    other = register(client, username="bob", email="bob@example.com")["token"]
    assert client.get(f"/api/tasks/{task['task_id']}", headers=bearer(other)).status_code == 404
    assert client.get(f"/api/tasks/{task['task_id']}", headers=device("dev-1")).status_code == 404
    assert client.get(f"/api/tasks/{task['task_id']}", headers=bearer(token)).status_code == 200


def test_invalid_token_falls_back_to_anonymous_on_task_routes(client) -> None:
    create_task(client, headers=device("dev-1"))
    resp = client.get("/api/tasks/", headers={**bearer("garbage"), **device("dev-1")})
    assert resp.status_code == 200
    assert resp.json()["pagination"]["total"] == 1
