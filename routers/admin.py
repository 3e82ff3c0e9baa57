# routers/admin.py
import logging
import math
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from auth.deps import require_admin
from core.timeutil import utcnow
from db.database import get_db
from models.task import Task
from schemas.task import TaskCreate, TaskStatus, TaskEnvelope, TaskListEnvelope
from services.task_service import (
    apply_schedule,
    complete_task as complete,
    refresh_expired,
    text_search,
    to_response,
)
from services.stats_service import admin_overview

logger = logging.getLogger(__name__)

ADMIN_DEVICE_ID = "admin"

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)


def _get_task(db: Session, task_id: UUID) -> Task:
    task = db.query(Task).filter(Task.task_id == task_id).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("/tasks", response_model=TaskListEnvelope)
def list_all_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    search: str = "",
    status_: Optional[TaskStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    q = db.query(Task)
    if search:
        q = q.filter(text_search(search))
    if status_ is not None:
        q = q.filter(Task.status == status_.value)

    total = q.count()
    tasks = q.order_by(Task.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    now = utcnow()
    refresh_expired(db, tasks, now)
    return {
        "data": [to_response(t, now) for t in tasks],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@router.post("/tasks", response_model=TaskEnvelope, status_code=status.HTTP_201_CREATED)
def create_any_task(data: TaskCreate, db: Session = Depends(get_db)):
    task = Task(
        title=data.title,
        description=data.description,
        total_days=data.total_days,
        start_date=utcnow(),
        status="active",
        device_id=ADMIN_DEVICE_ID,
    )
    apply_schedule(task)
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("admin created task %s", task.task_id)
    return {"data": to_response(task), "message": "Task created"}


@router.put("/tasks/{task_id}", response_model=TaskEnvelope)
def update_any_task(task_id: UUID, data: TaskCreate, db: Session = Depends(get_db)):
    """Full replacement of title / description / days; any status."""
    task = _get_task(db, task_id)
    task.title = data.title
    task.description = data.description
    if data.total_days != task.total_days:
        task.total_days = data.total_days
        apply_schedule(task)
    db.commit()
    db.refresh(task)
    return {"data": to_response(task), "message": "Task updated"}


@router.patch("/tasks/{task_id}/complete", response_model=TaskEnvelope)
def complete_any_task(task_id: UUID, db: Session = Depends(get_db)):
    task = _get_task(db, task_id)
    if complete(task):
        db.commit()
        db.refresh(task)
    return {"data": to_response(task), "message": "Task completed"}


@router.delete("/tasks/{task_id}")
def delete_any_task(task_id: UUID, db: Session = Depends(get_db)):
    task = _get_task(db, task_id)
    db.delete(task)
    db.commit()
    logger.info("admin deleted task %s", task_id)
    return {"success": True, "message": "Task deleted"}


@router.get("/stats")
def get_admin_stats(db: Session = Depends(get_db)):
    return {"success": True, "data": admin_overview(db)}
