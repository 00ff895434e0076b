# models/daily_task.py

import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Text, Date, DateTime, Float, Integer, Boolean, Uuid,
    ForeignKey, CheckConstraint, Enum as SqlEnum
)
from sqlalchemy.orm import relationship
from challenge_service.core.config import Base


class TaskType(str, enum.Enum):
    exercise = "exercise"
    meal = "meal"
    fasting = "fasting"
    sleep = "sleep"
    water = "water"
    other = "other"


class DailyTask(Base):
    __tablename__ = "daily_tasks"
    __table_args__ = (
        # Exactly one addressing mode per task
        CheckConstraint(
            "(task_date IS NULL) <> (day_of_challenge IS NULL)",
            name="ck_daily_task_single_addressing",
        ),
        CheckConstraint("points >= 0", name="ck_daily_task_points"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    challenge_id = Column(Uuid(as_uuid=True), ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True)
    task_type = Column(SqlEnum(TaskType), nullable=False, default=TaskType.other)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_required = Column(Boolean, nullable=False, default=True)
    points = Column(Integer, nullable=False, default=0)

    target_value = Column(Float, nullable=True)
    target_unit = Column(String(50), nullable=True)
    exercise_type = Column(String(100), nullable=True)
    meal_type = Column(String(100), nullable=True)
    fasting_type = Column(String(100), nullable=True)

    task_date = Column(Date, nullable=True, index=True)
    day_of_challenge = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    challenge = relationship("Challenge", back_populates="tasks")
    completions = relationship("TaskCompletion", back_populates="task", cascade="all, delete-orphan")
