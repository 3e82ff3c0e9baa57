# tests/test_task_service.py

from __future__ import annotations

from datetime import datetime, timedelta

from models.task import Task
from services.task_service import (
    apply_schedule,
    check_expiration,
    complete_task,
    derived_fields,
    migrate_device_tasks,
    owner_filter,
)

START = datetime(2024, 1, 1, 8, 0, 0)


def make_task(days: int = 30, status: str = "active", start: datetime = START) -> Task:
    task = Task(title="Run", total_days=days, start_date=start, status=status, device_id="dev")
    return apply_schedule(task)


def test_end_date_is_start_plus_total_days() -> None:
    task = make_task(days=30)
    assert task.end_date == datetime(2024, 1, 31, 8, 0, 0)


def test_end_date_follows_total_days_change() -> None:
    task = make_task(days=10)
    task.total_days = 45
    apply_schedule(task)
    assert task.end_date == START + timedelta(days=45)


def test_derived_fields_mid_way() -> None:
    task = make_task(days=30)
    d = derived_fields(task, now=START + timedelta(days=15))
    assert d == {"remaining_days": 15, "is_expired": False, "progress_percentage": 50}


def test_remaining_days_rounds_up_partial_days() -> None:
    task = make_task(days=30)
    d = derived_fields(task, now=START + timedelta(days=10, hours=1))
    assert d["remaining_days"] == 20


def test_derived_fields_before_start_and_after_end() -> None:
    task = make_task(days=5)
    assert derived_fields(task, now=START - timedelta(hours=1))["progress_percentage"] == 0

    after = derived_fields(task, now=START + timedelta(days=6))
    assert after == {"remaining_days": 0, "is_expired": True, "progress_percentage": 100}


def test_completed_task_is_never_expired() -> None:
    task = make_task(days=5, status="completed")
    d = derived_fields(task, now=START + timedelta(days=100))
    assert d == {"remaining_days": 0, "is_expired": False, "progress_percentage": 100}


def test_complete_is_idempotent() -> None:
    task = make_task()
    first = START + timedelta(days=3)

    assert complete_task(task, now=first) is True
    assert task.status == "completed"
    assert task.completed_date == first
    assert task.completion_rate == 100

    assert complete_task(task, now=first + timedelta(days=1)) is False
    assert task.completed_date == first


def test_check_expiration_only_flips_overdue_active_tasks() -> None:
    late = START + timedelta(days=31)

    active = make_task(days=30)
    assert check_expiration(active, now=late) is True
    assert active.status == "expired"

    done = make_task(days=30, status="completed")
    assert check_expiration(done, now=late) is False
    assert done.status == "completed"

    fresh = make_task(days=30)
    assert check_expiration(fresh, now=START + timedelta(days=1)) is False
    assert fresh.status == "active"


def _add(db, device_id: str, user_id=None) -> Task:
    task = make_task()
    task.device_id = device_id
    task.user_id = user_id
    db.add(task)
    db.commit()
    return task


def test_migrate_device_tasks_moves_only_ownerless_tasks_of_the_device(db_session) -> None:
    from models.user import User

    owner = User(username="bob", email="bob@example.com", password_hash="x")
    other = User(username="eve", email="eve@example.com", password_hash="x")
    db_session.add_all([owner, other])
    db_session.commit()

    _add(db_session, "dev-1")
    _add(db_session, "dev-1")
    _add(db_session, "dev-1", user_id=other.user_id)
    _add(db_session, "dev-2")

    assert migrate_device_tasks(db_session, "dev-1", owner.user_id) == 2
    # second run finds nothing left
    assert migrate_device_tasks(db_session, "dev-1", owner.user_id) == 0

    mine = db_session.query(Task).filter(owner_filter(owner, "ignored")).all()
    assert len(mine) == 2
    assert db_session.query(Task).filter(owner_filter(other, "ignored")).count() == 1
    assert db_session.query(Task).filter(owner_filter(None, "dev-2")).count() == 1
    assert db_session.query(Task).filter(owner_filter(None, "dev-1")).count() == 0


def test_migrate_with_empty_device_id_is_a_no_op(db_session) -> None:
    import uuid

    _add(db_session, "dev-1")
    assert migrate_device_tasks(db_session, "", uuid.uuid4()) == 0
