# routers/tasks.py
import logging
import math
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from auth.deps import get_optional_user
from core.timeutil import utcnow
from db.database import get_db
from models.task import Task
from schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskImport,
    TaskBatch,
    TaskStatus,
    TaskEnvelope,
    TaskListEnvelope,
)
from services.device import get_device_id
from services.task_service import (
    apply_schedule,
    complete_task as complete,
    import_tasks,
    owner_filter,
    refresh_expired,
    text_search,
    to_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


# -------------------------
# utility
# -------------------------
def _get_owned_task(db: Session, task_id: UUID, user, device_id: str) -> Task:
    task = db.query(Task).filter(Task.task_id == task_id, owner_filter(user, device_id)).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


# -------------------------
# endpoints
# -------------------------
@router.get("/", response_model=TaskListEnvelope)
def list_tasks(
    status_: Optional[TaskStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
    device_id: str = Depends(get_device_id),
):
    now = utcnow()
    criteria = owner_filter(user, device_id)

    # expire overdue tasks first so the status filter sees current values
    refresh_expired(
        db,
        db.query(Task).filter(criteria, Task.status == "active", Task.end_date < now).all(),
        now,
    )

    q = db.query(Task).filter(criteria)
    if status_ is not None:
        q = q.filter(Task.status == status_.value)

    total = q.count()
    tasks = q.order_by(Task.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

    return {
        "success": True,
        "data": [to_response(t, now) for t in tasks],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@router.post("/", response_model=TaskEnvelope, status_code=status.HTTP_201_CREATED)
def create_task(
    data: TaskCreate,
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
    device_id: str = Depends(get_device_id),
):
    task = Task(
        title=data.title,
        description=data.description,
        total_days=data.total_days,
        start_date=utcnow(),
        status="active",
        device_id=device_id,
        user_id=user.user_id if user else None,
    )
    apply_schedule(task)
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("task %s created (%d days)", task.task_id, task.total_days)
    return {"data": to_response(task), "message": "Task created"}


@router.post("/import", response_model=TaskListEnvelope, status_code=status.HTTP_201_CREATED)
def import_local_tasks(
    data: TaskImport,
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
    device_id: str = Depends(get_device_id),
):
    tasks = import_tasks(db, data.tasks, device_id, user)
    now = utcnow()
    return {"data": [to_response(t, now) for t in tasks]}


@router.post("/batch")
def batch_tasks(
    data: TaskBatch,
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
    device_id: str = Depends(get_device_id),
):
    q = db.query(Task).filter(Task.task_id.in_(data.task_ids), owner_filter(user, device_id))

    if data.action == "complete":
        now = utcnow()
        tasks = q.filter(Task.status == "active").all()
        count = sum(1 for t in tasks if complete(t, now))
        db.commit()
        return {"success": True, "data": {"modified_count": count}, "message": "Batch complete done"}

    count = q.delete(synchronize_session=False)
    db.commit()
    return {"success": True, "data": {"deleted_count": count}, "message": "Batch delete done"}


@router.get("/search/{query}", response_model=TaskListEnvelope)
def search_tasks(
    query: str,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
    device_id: str = Depends(get_device_id),
):
    tasks = (
        db.query(Task)
        .filter(owner_filter(user, device_id), text_search(query))
        .order_by(Task.created_at.desc())
        .limit(limit)
        .all()
    )
    now = utcnow()
    refresh_expired(db, tasks, now)
    return {"data": [to_response(t, now) for t in tasks]}


@router.get("/{task_id}", response_model=TaskEnvelope)
def get_task(
    task_id: UUID,
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
    device_id: str = Depends(get_device_id),
):
    task = _get_owned_task(db, task_id, user, device_id)
    now = utcnow()
    refresh_expired(db, [task], now)
    return {"data": to_response(task, now)}


@router.put("/{task_id}", response_model=TaskEnvelope)
def update_task(
    task_id: UUID,
    task_update: TaskUpdate,
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
    device_id: str = Depends(get_device_id),
):
    task = _get_owned_task(db, task_id, user, device_id)

    if task.status != "active":
        raise HTTPException(status_code=400, detail="Only active tasks can be updated")

    if task_update.title is not None:
        task.title = task_update.title
    if task_update.description is not None:
        task.description = task_update.description
    if task_update.total_days is not None and task_update.total_days != task.total_days:
        task.total_days = task_update.total_days
        apply_schedule(task)

    db.commit()
    db.refresh(task)
    return {"data": to_response(task), "message": "Task updated"}


@router.patch("/{task_id}/complete", response_model=TaskEnvelope)
def complete_task(
    task_id: UUID,
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
    device_id: str = Depends(get_device_id),
):
    task = _get_owned_task(db, task_id, user, device_id)

    if complete(task):
        db.commit()
        db.refresh(task)
        logger.info("task %s completed", task.task_id)
        message = "Task completed!"
    else:
        message = "Task was already completed"

    return {"data": to_response(task), "message": message}


@router.delete("/{task_id}")
def delete_task(
    task_id: UUID,
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
    device_id: str = Depends(get_device_id),
):
    task = _get_owned_task(db, task_id, user, device_id)
    db.delete(task)
    db.commit()
    return {"success": True, "message": "Task deleted"}
