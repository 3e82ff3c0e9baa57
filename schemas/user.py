# schemas/user.py
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional
from uuid import UUID
import re

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    if not _EMAIL_RE.match(v):
        raise ValueError("invalid email address")
    return v


class UserRegister(BaseModel):
    username: str = Field(..., min_length=3, max_length=20)
    email: str
    password: str = Field(..., min_length=6)
    device_id: Optional[str] = Field(None, max_length=64)

    @field_validator("username", mode="before")
    @classmethod
    def _strip_username(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)


class UserLogin(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    device_id: Optional[str] = Field(None, max_length=64)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return v.strip().lower()


class MigrateTasks(BaseModel):
    device_id: str = Field(..., min_length=1, max_length=64)


class UserPublic(BaseModel):
    id: UUID
    username: str
    email: str


class UserProfile(UserPublic):
    created_at: datetime
    last_login_at: Optional[datetime]


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserPublic
    migrated_count: int = 0


class MeResponse(BaseModel):
    user: UserProfile


class MigrateResponse(BaseModel):
    message: str
    migrated_count: int
