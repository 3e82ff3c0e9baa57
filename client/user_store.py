# client/user_store.py
from __future__ import annotations

import locale
import logging
import platform
import time
from typing import Optional

from client.api import ApiClient, ApiError
from client.storage import LocalStorage
from client.task_store import TaskStore
from services.device import fingerprint_hash

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
DEVICE_KEY = "deviceId"


class UserStore:
    def __init__(self, storage: LocalStorage, api: ApiClient, task_store: TaskStore) -> None:
        self.storage = storage
        self.api = api
        self.task_store = task_store

        self.user: Optional[dict] = None
        self.token: Optional[str] = storage.get_item(TOKEN_KEY)
        self.loading = False
        self.error: Optional[str] = None

        self.api.token = self.token
        if self.api.device_id_provider is None:
            self.api.device_id_provider = self.get_device_id
        self.api.on_unauthorized = self._clear_token

    # -------------------------
    # computed
    # -------------------------
    @property
    def is_logged_in(self) -> bool:
        return bool(self.token) and self.user is not None

    @property
    def username(self) -> str:
        return (self.user or {}).get("username", "")

    @property
    def email(self) -> str:
        return (self.user or {}).get("email", "")

    # -------------------------
    # device id
    # -------------------------
    def generate_device_id(self) -> str:
        try:
            lang = locale.getlocale()[0] or ""
        except ValueError:
            lang = ""
        parts = [
            platform.platform(),
            platform.node(),
            lang,
            "/".join(time.tzname),
        ]
        return fingerprint_hash("".join(parts))

    def get_device_id(self) -> str:
        device_id = self.storage.get_item(DEVICE_KEY)
        if not device_id:
            device_id = self.generate_device_id()
            self.storage.set_item(DEVICE_KEY, device_id)
        return device_id

    # -------------------------
    # token
    # -------------------------
    def _save_token(self, token: str) -> None:
        self.token = token
        self.api.token = token
        self.storage.set_item(TOKEN_KEY, token)

    def _clear_token(self) -> None:
        self.token = None
        self.api.token = None
        self.storage.remove_item(TOKEN_KEY)

    # -------------------------
    # auth flows
    # -------------------------
    def _authenticate(self, path: str, payload: dict, fallback_error: str) -> dict:
        self.loading = True
        self.error = None
        try:
            resp = self.api.post(path, json={**payload, "device_id": self.get_device_id()})
        except ApiError as e:
            self.error = e.message or fallback_error
            return {"success": False, "error": self.error}
        finally:
            self.loading = False

        self._save_token(resp["token"])
        self.user = resp["user"]

        # server-side device tasks were re-owned by the call above;
        # local-only tasks are uploaded now
        merged = self.task_store.merge_local_into_account()
        return {
            "success": True,
            "migrated_count": resp.get("migrated_count", 0),
            "merged_count": merged,
        }

    def register(self, username: str, email: str, password: str) -> dict:
        return self._authenticate(
            "/auth/register",
            {"username": username, "email": email, "password": password},
            "Registration failed",
        )

    def login(self, email: str, password: str) -> dict:
        return self._authenticate(
            "/auth/login",
            {"email": email, "password": password},
            "Login failed",
        )

    def fetch_user_info(self) -> bool:
        if not self.token:
            return False
        try:
            resp = self.api.get("/auth/me")
        except ApiError as e:
            # token probably expired
            logger.error("failed to fetch user info: %s", e.message)
            self.logout()
            return False
        self.user = resp["user"]
        return True

    def migrate_tasks(self) -> dict:
        try:
            resp = self.api.post("/auth/migrate-tasks", json={"device_id": self.get_device_id()})
        except ApiError as e:
            logger.error("task migration failed: %s", e.message)
            return {"success": False, "error": e.message or "Task migration failed"}
        return {"success": True, "migrated_count": resp["migrated_count"]}

    def logout(self) -> None:
        self.user = None
        self._clear_token()
        self.error = None
        self.task_store.clear_all_data()
        self.task_store.load_tasks(force_anonymous=True)

    def init(self) -> None:
        if self.token:
            self.fetch_user_info()
