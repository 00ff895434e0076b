# schemas/progress.py
from typing import Optional
from datetime import date, datetime
from uuid import UUID
from pydantic import Field

from challenge_service.schemas.common import CamelModel
from challenge_service.schemas.daily_task import DailyTaskRead


class TaskEngagementRead(CamelModel):
    task_id: UUID
    date: date
    total_participants: int
    completed_count: int
    engagement_rate: int = Field(..., ge=0, le=100)


class TaskEngagementSnapshot(TaskEngagementRead):
    computed_at: datetime


class DailyTaskEngagementRead(DailyTaskRead):
    """A task of the day together with its engagement figures."""
    date: date
    total_participants: int
    completed_count: int
    engagement_rate: int = Field(..., ge=0, le=100)


class LeaderboardEntryRead(CamelModel):
    rank: int
    user_id: UUID
    user_name: str
    photo_url: Optional[str] = None
    progress: int
    completed: bool
    joined_at: datetime
