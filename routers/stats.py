# routers/stats.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from auth.deps import get_optional_user
from db.database import get_db
from services.device import get_device_id
from services.task_service import owner_filter
from services import stats_service

router = APIRouter(prefix="/api/stats", tags=["Stats"])


def _owner_criteria(user=Depends(get_optional_user), device_id: str = Depends(get_device_id)):
    return owner_filter(user, device_id)


@router.get("/global")
def get_global_stats(db: Session = Depends(get_db)):
    return {"success": True, "data": stats_service.global_stats(db)}


@router.get("/popular-goals")
def get_popular_goals(limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    return {"success": True, "data": stats_service.popular_goals(db, limit)}


@router.get("/user")
def get_user_stats(db: Session = Depends(get_db), criteria=Depends(_owner_criteria)):
    return {"success": True, "data": stats_service.owner_stats(db, criteria)}


@router.get("/trends")
def get_trends(
    days: int = Query(30, ge=1, le=3650),
    db: Session = Depends(get_db),
    criteria=Depends(_owner_criteria),
):
    return {"success": True, "data": stats_service.trends(db, criteria, days)}


@router.get("/goal-types")
def get_goal_types(db: Session = Depends(get_db), criteria=Depends(_owner_criteria)):
    return {"success": True, "data": stats_service.goal_types(db, criteria)}


@router.get("/achievements")
def get_achievements(db: Session = Depends(get_db), criteria=Depends(_owner_criteria)):
    return {"success": True, "data": stats_service.achievements(db, criteria)}
