# tests/test_stats_api.py

from __future__ import annotations

import pytest

from core.timeutil import utcnow
from services.stats_service import goal_type_of

from .helpers import create_task, device

DEV = device("stats-dev")


def _complete(client, task_id: str, headers=DEV) -> None:
    assert client.patch(f"/api/tasks/{task_id}/complete", headers=headers).status_code == 200


def test_global_stats(client) -> None:
    empty = client.get("/api/stats/global").json()["data"]
    assert empty == {
        "total_tasks": 0,
        "active_tasks": 0,
        "completed_tasks": 0,
        "expired_tasks": 0,
        "avg_days": 0.0,
        "unique_users": 0,
    }

    a = create_task(client, days=10, headers=DEV)
    create_task(client, days=20, headers=DEV)
    create_task(client, days=25, headers=device("other"))
    _complete(client, a["task_id"])

    data = client.get("/api/stats/global").json()["data"]
    assert data["total_tasks"] == 3
    assert data["active_tasks"] == 2
    assert data["completed_tasks"] == 1
    assert data["avg_days"] == 18.3
    assert data["unique_users"] == 2


def test_popular_goals_need_two_takers(client) -> None:
    first = create_task(client, title="Read", days=10, headers=DEV)
    create_task(client, title="Read", days=20, headers=device("other"))
    create_task(client, title="Read", days=30, headers=device("third"))
    create_task(client, title="Swim", days=5, headers=DEV)
    _complete(client, first["task_id"])

    goals = client.get("/api/stats/popular-goals").json()["data"]
    assert goals == [{"title": "Read", "count": 3, "avg_days": 20.0, "completion_rate": 33.3}]


def test_user_stats_are_scoped_to_the_requester(client) -> None:
    a = create_task(client, days=10, headers=DEV)
    create_task(client, days=30, headers=DEV)
    create_task(client, days=99, headers=device("other"))
    _complete(client, a["task_id"])

    data = client.get("/api/stats/user", headers=DEV).json()["data"]
    assert data == {
        "total_tasks": 2,
        "active_tasks": 1,
        "completed_tasks": 1,
        "expired_tasks": 0,
        "avg_days": 20.0,
        "total_days": 40,
        "completion_rate": 50.0,
    }


def test_trends_group_by_creation_day(client) -> None:
    a = create_task(client, headers=DEV)
    create_task(client, headers=DEV)
    _complete(client, a["task_id"])

    data = client.get("/api/stats/trends", params={"days": 7}, headers=DEV).json()["data"]
    assert data == [{"date": utcnow().strftime("%Y-%m-%d"), "created": 2, "completed": 1}]


@pytest.mark.parametrize(
    "days, expected",
    [(1, "short"), (7, "short"), (8, "medium"), (30, "medium"), (31, "long"), (100, "long"), (101, "extra_long")],
)
def test_goal_type_boundaries(days: int, expected: str) -> None:
    assert goal_type_of(days) == expected


def test_goal_types(client) -> None:
    a = create_task(client, days=3, headers=DEV)
    create_task(client, days=5, headers=DEV)
    create_task(client, days=200, headers=DEV)
    _complete(client, a["task_id"])

    data = client.get("/api/stats/goal-types", headers=DEV).json()["data"]
    assert [(g["goal_type"], g["count"], g["avg_completion_rate"]) for g in data] == [
        ("short", 2, 50.0),
        ("extra_long", 1, 0.0),
    ]


def test_achievements_and_badges(client) -> None:
    none = client.get("/api/stats/achievements", headers=DEV).json()["data"]
    assert none["total_completed"] == 0
    assert none["badges"] == []

    long_one = create_task(client, days=100, headers=DEV)
    short_one = create_task(client, days=10, headers=DEV)
    create_task(client, days=50, headers=DEV)
    _complete(client, long_one["task_id"])
    _complete(client, short_one["task_id"])

    data = client.get("/api/stats/achievements", headers=DEV).json()["data"]
    assert data["total_completed"] == 2
    assert data["avg_completion_days"] == 55.0
    assert data["longest_streak"] == 100
    assert data["shortest_streak"] == 10
    assert data["total_days_completed"] == 110
    assert [b["name"] for b in data["badges"]] == ["Beginner", "100-Day Challenge"]
