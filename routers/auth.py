# routers/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.deps import get_current_user
from auth.security import hash_password, verify_password, create_access_token
from core.timeutil import utcnow
from db.database import get_db
from models.user import User
from schemas.user import (
    UserRegister,
    UserLogin,
    MigrateTasks,
    AuthResponse,
    MeResponse,
    MigrateResponse,
)
from services.task_service import migrate_device_tasks

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["Auth"],
)

DUPLICATE_USER = "Username or email already in use"


def _public(user: User) -> dict:
    return {"id": user.user_id, "username": user.username, "email": user.email}


def _find_existing(db: Session, username: str, email: str):
    return db.query(User).filter(or_(User.username == username, User.email == email)).first()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: UserRegister, db: Session = Depends(get_db)):
    if _find_existing(db, data.username, data.email):
        raise HTTPException(status_code=400, detail=DUPLICATE_USER)

    user = User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
        device_id=data.device_id,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent registration for the same name or email
        db.rollback()
        raise HTTPException(status_code=400, detail=DUPLICATE_USER)
    db.refresh(user)
    logger.info("registered user %s", user.user_id)

    # anonymous tasks created on this device follow the new account
    migrated = migrate_device_tasks(db, data.device_id, user.user_id) if data.device_id else 0

    return {
        "message": "Registration successful",
        "token": create_access_token(user.user_id),
        "user": _public(user),
        "migrated_count": migrated,
    }


@router.post("/login", response_model=AuthResponse)
def login(data: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Incorrect email or password")

    user.last_login_at = utcnow()
    if data.device_id:
        user.device_id = data.device_id
    db.commit()
    db.refresh(user)

    migrated = migrate_device_tasks(db, data.device_id, user.user_id) if data.device_id else 0

    return {
        "message": "Login successful",
        "token": create_access_token(user.user_id),
        "user": _public(user),
        "migrated_count": migrated,
    }


@router.get("/me", response_model=MeResponse)
def get_me(user: User = Depends(get_current_user)):
    """
    Profile of the logged-in user (requires a valid bearer token).
    """
    return {
        "user": {
            **_public(user),
            "created_at": user.created_at,
            "last_login_at": user.last_login_at,
        }
    }


@router.post("/migrate-tasks", response_model=MigrateResponse)
def migrate_tasks(
    data: MigrateTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    migrated = migrate_device_tasks(db, data.device_id, user.user_id)
    return {"message": "Tasks migrated", "migrated_count": migrated}
