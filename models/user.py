from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.orm import relationship
from db.database import Base
from core.timeutil import utcnow
import uuid


class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(20), unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)

    # fingerprint of the device the account was created / last logged in from
    device_id = Column(String(64), index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_login_at = Column(DateTime, default=utcnow)

    tasks = relationship("Task", back_populates="owner")
