# models/task_completion.py

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Text, Date, DateTime, Float, Integer, Uuid, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from challenge_service.core.config import Base


class TaskCompletion(Base):
    __tablename__ = "task_completions"
    __table_args__ = (
        # One completion per user, task and calendar day
        UniqueConstraint("task_id", "user_id", "completed_date", name="uq_completion_task_user_date"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    task_id = Column(Uuid(as_uuid=True), ForeignKey("daily_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    completed_date = Column(Date, nullable=False, index=True)

    actual_value = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    time_spent_minutes = Column(Integer, nullable=True)

    # Snapshot of the task's points at completion time
    points = Column(Integer, nullable=False, default=0)

    completed_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    task = relationship("DailyTask", back_populates="completions")
