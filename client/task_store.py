# client/task_store.py
"""Client-side task store.

Two data sources behind one interface:

- anonymous: tasks live in LocalStorage under two keys (active / completed)
- logged in: tasks live on the server, reached through ApiClient

`merge_local_into_account` is the one-time bridge between them, run right
after login or registration.
"""

from __future__ import annotations

import json
import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from client.api import ApiClient, ApiError
from client.storage import LocalStorage
from core.timeutil import utcnow
from schemas.task import (
    DESCRIPTION_MAX_LENGTH,
    MAX_DAYS,
    MAX_IMPORT_BATCH,
    MIN_DAYS,
    TITLE_MAX_LENGTH,
)

logger = logging.getLogger(__name__)

ACTIVE_KEY = "countdown-active-tasks"
COMPLETED_KEY = "countdown-completed-tasks"

UPCOMING_WINDOW_DAYS = 7
SERVER_PAGE_SIZE = 200
IMPORT_CHUNK_SIZE = MAX_IMPORT_BATCH

Task = Dict[str, Any]


def _parse(ts: str) -> datetime:
    if ts.endswith("Z"):
        ts = ts[:-1] + "+00:00"
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is not None:
        dt = dt.replace(tzinfo=None) - (dt.utcoffset() or timedelta(0))
    return dt


def _input_error(fields: dict) -> Optional[str]:
    """Same limits the server enforces on title / description / days."""
    if "title" in fields:
        title = fields["title"]
        if not isinstance(title, str) or not 1 <= len(title.strip()) <= TITLE_MAX_LENGTH:
            return f"Title must be 1-{TITLE_MAX_LENGTH} characters"
    if "description" in fields:
        desc = fields["description"]
        if desc is not None and (not isinstance(desc, str) or len(desc.strip()) > DESCRIPTION_MAX_LENGTH):
            return f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters"
    if "total_days" in fields:
        days = fields["total_days"]
        if isinstance(days, bool) or not isinstance(days, int) or not MIN_DAYS <= days <= MAX_DAYS:
            return f"Days must be between {MIN_DAYS} and {MAX_DAYS}"
    return None


def _parses(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        _parse(value)
    except ValueError:
        return False
    return True


def is_valid_task(t: Any) -> bool:
    """Shape check for tasks read back from storage or an import file."""
    if not isinstance(t, dict) or not t.get("id"):
        return False
    if any(k not in t for k in ("title", "total_days")):
        return False
    if _input_error(t) is not None:
        return False
    if not (_parses(t.get("start_date")) and _parses(t.get("end_date"))):
        return False
    return t.get("completed_date") is None or _parses(t["completed_date"])


def _valid_only(tasks: Any, where: str) -> List[Task]:
    if not isinstance(tasks, list):
        logger.warning("discarding non-list local data under %s", where)
        return []
    valid = [t for t in tasks if is_valid_task(t)]
    if len(valid) != len(tasks):
        logger.warning("skipping %d malformed task(s) under %s", len(tasks) - len(valid), where)
    return valid


def _import_item(t: Task) -> dict:
    completed = t.get("status") == "completed"
    return {
        "title": t["title"],
        "description": t.get("description"),
        "total_days": t["total_days"],
        "start_date": t["start_date"],
        "status": "completed" if completed else "active",
        "completed_date": t.get("completed_date") if completed else None,
    }


def _from_server(item: dict) -> Task:
    """Server TaskResponse -> the flat shape this store keeps."""
    return {
        "id": item["task_id"],
        "title": item["title"],
        "description": item.get("description"),
        "total_days": item["total_days"],
        "start_date": item["start_date"],
        "end_date": item["end_date"],
        "created_at": item.get("created_at"),
        "status": item.get("status", "active"),
        "completed_date": item.get("completed_date"),
    }


class TaskStore:
    def __init__(
        self,
        storage: LocalStorage,
        api: Optional[ApiClient] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.storage = storage
        self.api = api
        self._clock = clock

        self.active_tasks: List[Task] = []
        self.completed_tasks: List[Task] = []
        self.is_loading = False
        self.error: Optional[str] = None
        self.force_anonymous = False

    # -------------------------
    # mode
    # -------------------------
    @property
    def remote(self) -> bool:
        return self.api is not None and self.api.authenticated and not self.force_anonymous

    # -------------------------
    # computed
    # -------------------------
    @property
    def total_tasks(self) -> int:
        return len(self.active_tasks) + len(self.completed_tasks)

    @property
    def active_tasks_count(self) -> int:
        return len(self.active_tasks)

    @property
    def completed_tasks_count(self) -> int:
        return len(self.completed_tasks)

    @property
    def expired_tasks(self) -> List[Task]:
        now = self._clock()
        return [t for t in self.active_tasks if _parse(t["end_date"]) < now]

    @property
    def upcoming_tasks(self) -> List[Task]:
        """Active tasks ending within the next week (1..7 days left)."""
        now = self._clock()
        out = []
        for t in self.active_tasks:
            diff = (_parse(t["end_date"]) - now).total_seconds() / 86400
            days_left = math.ceil(diff)
            if 0 < days_left <= UPCOMING_WINDOW_DAYS:
                out.append(t)
        return out

    # -------------------------
    # local storage
    # -------------------------
    def _report(self, message: str, exc: Exception) -> None:
        detail = exc.message if isinstance(exc, ApiError) else str(exc)
        logger.error("%s: %s", message, detail)
        self.error = detail if isinstance(exc, ApiError) else message

    def load_from_storage(self) -> None:
        try:
            saved_active = self.storage.get_item(ACTIVE_KEY)
            saved_completed = self.storage.get_item(COMPLETED_KEY)
            active = json.loads(saved_active) if saved_active else []
            completed = json.loads(saved_completed) if saved_completed else []
        except ValueError as e:
            self._report("Failed to load data", e)
            return
        self.active_tasks = _valid_only(active, ACTIVE_KEY)
        self.completed_tasks = _valid_only(completed, COMPLETED_KEY)

    def save_to_storage(self) -> None:
        try:
            self.storage.set_item(ACTIVE_KEY, json.dumps(self.active_tasks, ensure_ascii=False))
            self.storage.set_item(COMPLETED_KEY, json.dumps(self.completed_tasks, ensure_ascii=False))
        except (OSError, TypeError) as e:
            self._report("Failed to save data", e)

    # -------------------------
    # loading
    # -------------------------
    def load_tasks(self, force_anonymous: bool = False) -> None:
        self.force_anonymous = force_anonymous
        self.error = None

        if not self.remote:
            self.load_from_storage()
            return

        self.is_loading = True
        try:
            items: List[dict] = []
            page = 1
            while True:
                resp = self.api.get("/tasks/", params={"page": page, "limit": SERVER_PAGE_SIZE})
                items.extend(resp["data"])
                if page >= resp["pagination"]["pages"]:
                    break
                page += 1
        except ApiError as e:
            self._report("Failed to load tasks", e)
            return
        finally:
            self.is_loading = False

        tasks = [_from_server(i) for i in items]
        self.active_tasks = [t for t in tasks if t["status"] != "completed"]
        self.completed_tasks = [t for t in tasks if t["status"] == "completed"]

    # -------------------------
    # mutations
    # -------------------------
    def add_task(self, title: str, days: int, description: Optional[str] = None) -> Optional[Task]:
        problem = _input_error({"title": title, "description": description, "total_days": days})
        if problem:
            self.error = problem
            return None
        title = title.strip()
        if description is not None:
            description = description.strip()

        if self.remote:
            try:
                resp = self.api.post(
                    "/tasks/",
                    json={"title": title, "description": description, "total_days": days},
                )
            except ApiError as e:
                self._report("Failed to create task", e)
                return None
            task = _from_server(resp["data"])
            self.active_tasks.append(task)
            return task

        now = self._clock()
        task = {
            "id": uuid.uuid4().hex,
            "title": title,
            "description": description,
            "total_days": days,
            "start_date": now.isoformat(),
            "end_date": (now + timedelta(days=days)).isoformat(),
            "created_at": now.isoformat(),
            "status": "active",
            "completed_date": None,
        }
        self.active_tasks.append(task)
        self.save_to_storage()
        return task

    def _index(self, tasks: List[Task], task_id: str) -> int:
        for i, t in enumerate(tasks):
            if t["id"] == task_id:
                return i
        return -1

    def complete_task(self, task_id: str) -> Optional[Task]:
        idx = self._index(self.active_tasks, task_id)
        if idx == -1:
            return None

        if self.remote:
            try:
                resp = self.api.patch(f"/tasks/{task_id}/complete")
            except ApiError as e:
                self._report("Failed to complete task", e)
                return None
            completed = _from_server(resp["data"])
        else:
            completed = {
                **self.active_tasks[idx],
                "completed_date": self._clock().isoformat(),
                "status": "completed",
            }

        self.completed_tasks.append(completed)
        del self.active_tasks[idx]
        if not self.remote:
            self.save_to_storage()
        return completed

    def _delete_from(self, tasks: List[Task], task_id: str) -> bool:
        if self.remote:
            try:
                self.api.delete(f"/tasks/{task_id}")
            except ApiError as e:
                self._report("Failed to delete task", e)
                return False
        idx = self._index(tasks, task_id)
        if idx != -1:
            del tasks[idx]
        if not self.remote:
            self.save_to_storage()
        return True

    def delete_task(self, task_id: str) -> bool:
        return self._delete_from(self.active_tasks, task_id)

    def delete_completed_task(self, task_id: str) -> bool:
        return self._delete_from(self.completed_tasks, task_id)

    def edit_task(self, task_id: str, updates: dict) -> Optional[Task]:
        idx = self._index(self.active_tasks, task_id)
        if idx == -1:
            return None
        problem = _input_error(updates)
        if problem:
            self.error = problem
            return None
        updates = {k: v.strip() if isinstance(v, str) and k in ("title", "description") else v
                   for k, v in updates.items()}

        if self.remote:
            payload = {k: updates[k] for k in ("title", "description", "total_days") if k in updates}
            try:
                resp = self.api.put(f"/tasks/{task_id}", json=payload)
            except ApiError as e:
                self._report("Failed to update task", e)
                return None
            updated = _from_server(resp["data"])
        else:
            task = self.active_tasks[idx]
            updated = {**task, **updates}
            # days changed -> move the end date, start stays put
            if updates.get("total_days"):
                start = _parse(task["start_date"])
                updated["end_date"] = (start + timedelta(days=updates["total_days"])).isoformat()

        self.active_tasks[idx] = updated
        if not self.remote:
            self.save_to_storage()
        return updated

    # -------------------------
    # bulk
    # -------------------------
    def export_data(self) -> dict:
        return {
            "active_tasks": self.active_tasks,
            "completed_tasks": self.completed_tasks,
            "export_date": self._clock().isoformat(),
            "total_tasks": self.total_tasks,
            "statistics": {
                "active_count": self.active_tasks_count,
                "completed_count": self.completed_tasks_count,
                "expired_count": len(self.expired_tasks),
                "upcoming_count": len(self.upcoming_tasks),
            },
        }

    def import_data(self, data: dict) -> bool:
        self.error = None
        if not isinstance(data, dict):
            self.error = "Failed to import data"
            logger.error("import rejected: expected an object")
            return False
        active = data.get("active_tasks")
        completed = data.get("completed_tasks")
        if (active is not None and not isinstance(active, list)) or (
            completed is not None and not isinstance(completed, list)
        ):
            self.error = "Failed to import data"
            logger.error("import rejected: task collections must be lists")
            return False

        bad = sum(1 for t in (active or []) + (completed or []) if not is_valid_task(t))
        if bad:
            self.error = "Failed to import data"
            logger.error("import rejected: %d malformed task(s)", bad)
            return False

        if active is not None:
            self.active_tasks = active
        if completed is not None:
            self.completed_tasks = completed
        self.save_to_storage()
        return self.error is None

    def clear_all_data(self) -> None:
        self.active_tasks = []
        self.completed_tasks = []
        self.storage.remove_item(ACTIVE_KEY)
        self.storage.remove_item(COMPLETED_KEY)

    def get_task_stats(self) -> dict:
        return {
            "total": self.total_tasks,
            "active": self.active_tasks_count,
            "completed": self.completed_tasks_count,
            "expired": len(self.expired_tasks),
            "upcoming": len(self.upcoming_tasks),
        }

    # -------------------------
    # anonymous -> account
    # -------------------------
    def merge_local_into_account(self) -> int:
        """
        Upload every locally stored task to the logged-in account, then
        drop the local copy and switch to server data.

        Uploads go in chunks the import endpoint accepts. If a chunk fails,
        the tasks not yet uploaded stay in local storage for the next login
        and `error` is set. Malformed local entries are skipped and reported.
        Returns the number of tasks uploaded.
        """
        if self.api is None or not self.api.authenticated:
            return 0

        local = LocalSnapshot.read(self.storage)
        if local.is_empty():
            self.load_tasks()
            return 0

        pending = local.valid_tasks()
        merged = 0
        while pending:
            chunk = pending[:IMPORT_CHUNK_SIZE]
            try:
                resp = self.api.post("/tasks/import", json={"tasks": [_import_item(t) for t in chunk]})
            except ApiError as e:
                if merged:
                    LocalSnapshot.keep(self.storage, pending)
                self._report("Failed to merge local tasks", e)
                return merged
            merged += len(resp["data"])
            pending = pending[len(chunk):]

        logger.info("merged %d local task(s) into the account", merged)
        self.clear_all_data()
        self.load_tasks()
        if local.skipped and self.error is None:
            self.error = f"{local.skipped} malformed local task(s) could not be uploaded"
        return merged


class LocalSnapshot:
    """Tasks as currently persisted in local storage (not the in-memory lists)."""

    def __init__(self, active: List[Task], completed: List[Task]) -> None:
        self.active = active
        self.completed = completed
        self.skipped = 0

    @classmethod
    def read(cls, storage: LocalStorage) -> "LocalSnapshot":
        def load(key: str) -> List[Task]:
            raw = storage.get_item(key)
            if not raw:
                return []
            try:
                value = json.loads(raw)
            except ValueError:
                logger.warning("discarding unreadable local data under %s", key)
                return []
            return value if isinstance(value, list) else []

        return cls(load(ACTIVE_KEY), load(COMPLETED_KEY))

    @staticmethod
    def keep(storage: LocalStorage, tasks: List[Task]) -> None:
        """Rewrite local storage so it holds exactly `tasks`."""
        active = [t for t in tasks if t.get("status") != "completed"]
        completed = [t for t in tasks if t.get("status") == "completed"]
        storage.set_item(ACTIVE_KEY, json.dumps(active, ensure_ascii=False))
        storage.set_item(COMPLETED_KEY, json.dumps(completed, ensure_ascii=False))

    def is_empty(self) -> bool:
        return not self.active and not self.completed

    def valid_tasks(self) -> List[Task]:
        tasks = self.active + self.completed
        valid = [t for t in tasks if is_valid_task(t)]
        self.skipped = len(tasks) - len(valid)
        if self.skipped:
            logger.warning("skipping %d malformed local task(s)", self.skipped)
        return valid
