# schemas/daily_task.py
from typing import Optional
from datetime import date, datetime
from uuid import UUID
from pydantic import Field

from challenge_service.models.daily_task import TaskType
from challenge_service.schemas.common import CamelModel


# =====================================================================
# A. BASE SCHEMAS
# =====================================================================

class DailyTaskDetails(CamelModel):
    """Optional descriptive fields shared by create, update and read."""
    description: Optional[str] = None
    target_value: Optional[float] = None
    target_unit: Optional[str] = Field(None, max_length=50)
    exercise_type: Optional[str] = Field(None, max_length=100)
    meal_type: Optional[str] = Field(None, max_length=100)
    fasting_type: Optional[str] = Field(None, max_length=100)


# =====================================================================
# B. CREATE / UPDATE SCHEMAS
# =====================================================================

class DailyTaskCreate(DailyTaskDetails):
    """
    Task definition. Exactly one of ``task_date`` / ``day_of_challenge``
    must be given; the engine enforces it.
    """
    task_type: TaskType = TaskType.other
    title: str = ""
    is_required: bool = True
    points: int = 10
    task_date: Optional[str] = None
    day_of_challenge: Optional[int] = None


class DailyTaskUpdate(DailyTaskDetails):
    """Partial update, only while the task has no completions."""
    task_type: Optional[TaskType] = None
    title: Optional[str] = None
    is_required: Optional[bool] = None
    points: Optional[int] = None
    task_date: Optional[str] = None
    day_of_challenge: Optional[int] = None


# =====================================================================
# C. READ SCHEMAS
# =====================================================================

class DailyTaskRead(DailyTaskDetails):
    id: UUID
    challenge_id: UUID
    task_type: TaskType
    title: str
    is_required: bool
    points: int
    task_date: Optional[date] = None
    day_of_challenge: Optional[int] = None
    created_at: Optional[datetime] = None
