import logging
import secrets
import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from auth.security import decode_access_token
from core.config import settings
from db.database import get_db
from models.user import User

logger = logging.getLogger(__name__)

# auto_error=False: a missing header is handled here (401 / anonymous), not by FastAPI's 403
security = HTTPBearer(auto_error=False)


def _user_from_token(token: str, db: Session) -> Optional[User]:
    try:
        user_id = uuid.UUID(decode_access_token(token))
    except (JWTError, ValueError) as e:
        logger.debug("rejected token: %s", e)
        return None
    return db.query(User).filter(User.user_id == user_id).first()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = _user_from_token(credentials.credentials, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired access token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """
    Logged-in user if a valid token came with the request, otherwise None
    (the request is then served by device id).
    """
    if credentials is None:
        return None
    return _user_from_token(credentials.credentials, db)


def require_admin(x_admin_token: Optional[str] = Header(None)) -> None:
    if not x_admin_token or not secrets.compare_digest(x_admin_token.encode(), settings.ADMIN_TOKEN.encode()):
        logger.warning("admin authentication failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin authentication failed",
        )
