# services/task_service.py
import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import update, and_, or_
from sqlalchemy.orm import Session

from core.timeutil import utcnow, to_naive_utc
from models.task import Task
from models.user import User
from schemas.task import TaskResponse, TaskImportItem

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


# -------------------------
# schedule / derived fields
# -------------------------
def end_date_for(start_date: datetime, total_days: int) -> datetime:
    return start_date + timedelta(days=total_days)


def apply_schedule(task: Task) -> Task:
    """
    end_date = start_date + total_days.
    Call after any change to start_date or total_days.
    """
    if task.start_date is None:
        task.start_date = utcnow()
    task.end_date = end_date_for(task.start_date, task.total_days)
    return task


def remaining_days(task: Task, now: Optional[datetime] = None) -> int:
    if task.status == "completed":
        return 0
    now = now or utcnow()
    diff = (task.end_date - now).total_seconds()
    if diff <= 0:
        return 0
    return math.ceil(diff / SECONDS_PER_DAY)


def is_expired(task: Task, now: Optional[datetime] = None) -> bool:
    if task.status == "completed":
        return False
    now = now or utcnow()
    return task.end_date < now


def progress_percentage(task: Task, now: Optional[datetime] = None) -> int:
    if task.status == "completed":
        return 100
    now = now or utcnow()
    if now <= task.start_date:
        return 0
    if now >= task.end_date:
        return 100
    total = (task.end_date - task.start_date).total_seconds()
    elapsed = (now - task.start_date).total_seconds()
    return round(elapsed / total * 100)


def derived_fields(task: Task, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    return {
        "remaining_days": remaining_days(task, now),
        "is_expired": is_expired(task, now),
        "progress_percentage": progress_percentage(task, now),
    }


def to_response(task: Task, now: Optional[datetime] = None) -> TaskResponse:
    return TaskResponse.model_validate(task).model_copy(update=derived_fields(task, now))


# -------------------------
# state transitions
# -------------------------
def complete_task(task: Task, now: Optional[datetime] = None) -> bool:
    """
    Mark the task completed. Returns False (and changes nothing) when it
    already was, so double-completion keeps the first completed_date.
    """
    if task.status == "completed":
        return False
    task.status = "completed"
    if task.completed_date is None:
        task.completed_date = now or utcnow()
    task.completion_rate = 100
    return True


def check_expiration(task: Task, now: Optional[datetime] = None) -> bool:
    if task.status == "active" and is_expired(task, now):
        task.status = "expired"
        return True
    return False


def refresh_expired(db: Session, tasks: Iterable[Task], now: Optional[datetime] = None) -> int:
    """Flip overdue active tasks to expired and commit if anything changed."""
    now = now or utcnow()
    changed = sum(1 for t in tasks if check_expiration(t, now))
    if changed:
        db.commit()
        logger.debug("marked %d task(s) expired", changed)
    return changed


# -------------------------
# ownership
# -------------------------
def owner_filter(user: Optional[User], device_id: str):
    """
    SQL criteria for "the requester's tasks".
    Logged in -> by user_id; anonymous -> by device_id among unmigrated tasks.
    """
    if user is not None:
        return Task.user_id == user.user_id
    return and_(Task.device_id == device_id, Task.user_id.is_(None))


# -------------------------
# search
# -------------------------
LIKE_ESCAPE = "\\"


def text_search(query: str):
    """Case-insensitive substring match on title or description. `%` and `_` match literally."""
    escaped = (
        query.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    pattern = f"%{escaped}%"
    return or_(
        Task.title.ilike(pattern, escape=LIKE_ESCAPE),
        Task.description.ilike(pattern, escape=LIKE_ESCAPE),
    )


def migrate_device_tasks(db: Session, device_id: str, user_id: uuid.UUID) -> int:
    """
    Hand every ownerless task of `device_id` over to `user_id`.
    One-way and idempotent: a second call finds nothing left to move.
    """
    if not device_id:
        return 0
    result = db.execute(
        update(Task)
        .where(Task.device_id == device_id, Task.user_id.is_(None))
        .values(user_id=user_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    count = result.rowcount or 0
    if count:
        logger.info("migrated %d task(s) from device %s to user %s", count, device_id, user_id)
    return count


def import_tasks(
    db: Session,
    items: List[TaskImportItem],
    device_id: str,
    user: Optional[User],
) -> List[Task]:
    """
    Bulk-insert tasks that were kept in client local storage,
    preserving their start date and status.
    """
    created = []
    for item in items:
        task = Task(
            title=item.title,
            description=item.description,
            total_days=item.total_days,
            start_date=to_naive_utc(item.start_date),
            status=item.status.value,
            device_id=device_id,
            user_id=user.user_id if user else None,
        )
        apply_schedule(task)
        if item.status.value == "completed":
            task.completed_date = to_naive_utc(item.completed_date) or utcnow()
            task.completion_rate = 100
        db.add(task)
        created.append(task)

    db.commit()
    for task in created:
        db.refresh(task)
    logger.info("imported %d task(s) for device %s", len(created), device_id)
    return created
