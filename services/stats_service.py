# services/stats_service.py
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, case, distinct
from sqlalchemy.orm import Session

from core.timeutil import utcnow
from models.task import Task


def _round1(value) -> float:
    return round(float(value or 0), 1)


def _count_status(status: str):
    return func.sum(case((Task.status == status, 1), else_=0))


def _is_completed():
    return case((Task.status == "completed", 1.0), else_=0.0)


# -------------------------
# global
# -------------------------
def global_stats(db: Session) -> dict:
    row = db.query(
        func.count(Task.task_id),
        _count_status("active"),
        _count_status("completed"),
        _count_status("expired"),
        func.avg(Task.total_days),
        func.count(distinct(Task.device_id)),
    ).one()

    return {
        "total_tasks": row[0] or 0,
        "active_tasks": int(row[1] or 0),
        "completed_tasks": int(row[2] or 0),
        "expired_tasks": int(row[3] or 0),
        "avg_days": _round1(row[4]),
        "unique_users": row[5] or 0,
    }


def popular_goals(db: Session, limit: int = 10, min_count: int = 2) -> list[dict]:
    """
    Titles chosen by at least `min_count` tasks, most common first.
    completion_rate is a percentage with one decimal.
    """
    count = func.count(Task.task_id)
    q = (
        db.query(
            Task.title,
            count,
            func.avg(Task.total_days),
            func.avg(_is_completed()),
        )
        .group_by(Task.title)
        .having(count >= min_count)
        .order_by(count.desc(), Task.title)
        .limit(limit)
    )
    return [
        {
            "title": title,
            "count": n,
            "avg_days": _round1(avg_days),
            "completion_rate": _round1((rate or 0) * 100),
        }
        for title, n, avg_days, rate in q.all()
    ]


# -------------------------
# per owner
# -------------------------
def owner_stats(db: Session, criteria) -> dict:
    row = (
        db.query(
            func.count(Task.task_id),
            _count_status("active"),
            _count_status("completed"),
            _count_status("expired"),
            func.avg(Task.total_days),
            func.sum(Task.total_days),
            func.avg(_is_completed()),
        )
        .filter(criteria)
        .one()
    )
    return {
        "total_tasks": row[0] or 0,
        "active_tasks": int(row[1] or 0),
        "completed_tasks": int(row[2] or 0),
        "expired_tasks": int(row[3] or 0),
        "avg_days": _round1(row[4]),
        "total_days": int(row[5] or 0),
        "completion_rate": _round1((row[6] or 0) * 100),
    }


def trends(db: Session, criteria, days: int = 30, now: Optional[datetime] = None) -> list[dict]:
    """Created / completed counts per creation day over the last `days` days."""
    now = now or utcnow()
    since = now - timedelta(days=days)
    tasks = (
        db.query(Task.created_at, Task.status)
        .filter(criteria, Task.created_at >= since)
        .order_by(Task.created_at)
        .all()
    )

    buckets: dict[str, dict] = {}
    for created_at, status in tasks:
        day = created_at.strftime("%Y-%m-%d")
        b = buckets.setdefault(day, {"date": day, "created": 0, "completed": 0})
        b["created"] += 1
        if status == "completed":
            b["completed"] += 1
    return list(buckets.values())


GOAL_TYPES = [
    (7, "short"),       # <= 7 days
    (30, "medium"),     # 8-30 days
    (100, "long"),      # 31-100 days
    (None, "extra_long"),
]

GOAL_TYPE_LABELS = {
    "short": "Short-term (<=7 days)",
    "medium": "Medium-term (8-30 days)",
    "long": "Long-term (31-100 days)",
    "extra_long": "Extra-long (>100 days)",
}


def goal_type_of(total_days: int) -> str:
    for upper, name in GOAL_TYPES:
        if upper is None or total_days <= upper:
            return name
    return GOAL_TYPES[-1][1]


def goal_types(db: Session, criteria) -> list[dict]:
    rows = db.query(Task.total_days, Task.status).filter(criteria).all()

    groups: dict[str, list[int]] = {}
    for total_days, status in rows:
        groups.setdefault(goal_type_of(total_days), []).append(1 if status == "completed" else 0)

    out = [
        {
            "goal_type": name,
            "label": GOAL_TYPE_LABELS[name],
            "count": len(done),
            "avg_completion_rate": _round1(sum(done) / len(done) * 100),
        }
        for name, done in groups.items()
    ]
    out.sort(key=lambda g: g["count"], reverse=True)
    return out


BADGES = [
    # (name, description, icon, predicate)
    ("Beginner", "Completed your first goal", "🎯", lambda a: a["total_completed"] >= 1),
    ("Persistent", "Completed 5 goals", "🔥", lambda a: a["total_completed"] >= 5),
    ("Goal Master", "Completed 10 goals", "🏆", lambda a: a["total_completed"] >= 10),
    ("Legend", "Completed 20 goals", "👑", lambda a: a["total_completed"] >= 20),
    ("100-Day Challenge", "Completed a 100-day challenge", "💯", lambda a: a["longest_streak"] >= 100),
    ("Year Achiever", "365 days completed in total", "📅", lambda a: a["total_days_completed"] >= 365),
]


def achievements(db: Session, criteria) -> dict:
    row = (
        db.query(
            func.count(Task.task_id),
            func.avg(Task.total_days),
            func.max(Task.total_days),
            func.min(Task.total_days),
            func.sum(Task.total_days),
        )
        .filter(criteria, Task.status == "completed")
        .one()
    )
    achievement = {
        "total_completed": row[0] or 0,
        "avg_completion_days": _round1(row[1]),
        "longest_streak": row[2] or 0,
        "shortest_streak": row[3] or 0,
        "total_days_completed": int(row[4] or 0),
    }
    achievement["badges"] = [
        {"name": name, "description": desc, "icon": icon}
        for name, desc, icon, earned in BADGES
        if earned(achievement)
    ]
    return achievement


# -------------------------
# admin
# -------------------------
def admin_overview(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    total = db.query(func.count(Task.task_id)).scalar() or 0
    completed = db.query(func.count(Task.task_id)).filter(Task.status == "completed").scalar() or 0
    active = db.query(func.count(Task.task_id)).filter(Task.status == "active").scalar() or 0
    overdue = (
        db.query(func.count(Task.task_id))
        .filter(Task.status == "active", Task.end_date < now)
        .scalar()
        or 0
    )
    return {
        "stats": {
            "total_tasks": total,
            "completed_tasks": completed,
            "active_tasks": active,
            "expired_tasks": overdue,
        },
        "popular_goals": popular_goals(db, limit=10, min_count=1),
    }
