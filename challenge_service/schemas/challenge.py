# schemas/challenge.py
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID
from enum import Enum
from pydantic import Field

from challenge_service.models.challenge import ChallengeType
from challenge_service.core.timewindow import ChallengeStatus
from challenge_service.schemas.common import CamelModel
from challenge_service.schemas.daily_task import DailyTaskCreate


class ChallengeListFilter(str, Enum):
    all = "all"
    joined = "joined"
    created = "created"


# =====================================================================
# A. CREATE / UPDATE SCHEMAS
# =====================================================================

class ChallengeCreate(CamelModel):
    """
    Challenge definition. ``start_date`` is kept as text so a malformed
    value is reported as ``invalid_spec`` by the engine.
    """
    name: str
    description: Optional[str] = None
    type: ChallengeType = ChallengeType.custom
    goal: float = 0
    duration: int
    start_date: str
    image_url: Optional[str] = Field(None, max_length=512)
    daily_tasks: Optional[List[DailyTaskCreate]] = None


class ChallengeUpdate(CamelModel):
    """Mutable challenge fields. Dates, duration and type never change."""
    name: Optional[str] = None
    description: Optional[str] = None
    goal: Optional[float] = None
    image_url: Optional[str] = Field(None, max_length=512)


# =====================================================================
# B. READ SCHEMAS
# =====================================================================

class ParticipationRead(CamelModel):
    challenge_id: UUID
    user_id: UUID
    joined_at: datetime
    progress: int
    completed: bool


class ChallengeRead(CamelModel):
    id: UUID
    name: str
    description: Optional[str] = None
    type: ChallengeType
    goal: float
    duration: int
    start_date: date
    end_date: date
    creator_id: UUID
    image_url: Optional[str] = None
    participant_count: int
    created_at: Optional[datetime] = None

    # Derived at read time
    status: ChallengeStatus
    days_remaining: int
    current_day: int
    participation: Optional[ParticipationRead] = None


class MyProgressRead(CamelModel):
    challenge_id: UUID
    status: ChallengeStatus
    current_day: int
    days_remaining: int
    progress: int
    goal: float
    completed: bool
    joined_at: datetime
    tasks_today: int
    completed_today: int
