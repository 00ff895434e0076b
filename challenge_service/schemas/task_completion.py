# schemas/task_completion.py
from typing import Optional
from datetime import date, datetime
from uuid import UUID
from pydantic import Field

from challenge_service.schemas.common import CamelModel


class TaskCompletionCreate(CamelModel):
    """Body of ``POST .../tasks/{task_id}/complete``."""
    actual_value: Optional[float] = None
    notes: Optional[str] = Field(None, max_length=2000)
    time_spent_minutes: Optional[int] = Field(None, ge=0)


class TaskCompletionRead(CamelModel):
    id: UUID
    task_id: UUID
    user_id: UUID
    completed_date: date
    actual_value: Optional[float] = None
    notes: Optional[str] = None
    time_spent_minutes: Optional[int] = None
    points: int
    completed_at: Optional[datetime] = None
    is_completed: bool = True


class CompletionDetailRead(TaskCompletionRead):
    """Admin view of a completion with the user's display fields."""
    user_name: str
    user_email: Optional[str] = None
    user_photo_url: Optional[str] = None


class ActivateFastingRequest(CamelModel):
    fasting_type: str = Field(..., min_length=1, max_length=100)
