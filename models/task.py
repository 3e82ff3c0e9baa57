from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Text, Index, Uuid
from sqlalchemy.orm import relationship
from db.database import Base
from core.timeutil import utcnow
import uuid

TASK_STATUSES = ("active", "completed", "expired")


class Task(Base):
    __tablename__ = "tasks"

    task_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(100), nullable=False)
    description = Column(Text)

    total_days = Column(Integer, nullable=False)  # 1..3650
    start_date = Column(DateTime, nullable=False, default=utcnow)
    end_date = Column(DateTime, nullable=False)
    completed_date = Column(DateTime)

    status = Column(String(16), nullable=False, default="active")  # active / completed / expired

    # anonymous owner; user_id is set once the device's tasks are migrated
    device_id = Column(String(64), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.user_id"), nullable=True, index=True)

    completion_rate = Column(Float, nullable=False, default=0)  # 0..100

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="tasks")

    __table_args__ = (
        Index("ix_tasks_device_status", "device_id", "status"),
        Index("ix_tasks_status_end_date", "status", "end_date"),
        Index("ix_tasks_created_at", "created_at"),
    )
