# challenge_service/api/routers/admin.py
from typing import List, Optional
from uuid import UUID
from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from challenge_service.core.config import get_db
from challenge_service.core.security import get_current_user
from challenge_service.services.challenge_engine import ChallengeEngine, get_challenge_engine
from challenge_service.models.user_auth import UserAuth
from challenge_service.schemas import (
    DailyTaskCreate,
    DailyTaskUpdate,
    DailyTaskRead,
    DailyTaskEngagementRead,
    TaskEngagementRead,
    TaskEngagementSnapshot,
    SuccessResponse,
)

# Creator-or-admin checks happen in the engine, per challenge
router = APIRouter(prefix="/admin/challenges/{challenge_id}/tasks", tags=["Task Management"])


# =====================================================================
# TASK AUTHORING
# =====================================================================

@router.post(
    "",
    response_model=DailyTaskRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a daily task"
)
def create_task(
    challenge_id: UUID,
    task_in: DailyTaskCreate,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """
    Create a task addressed by `taskDate` or by `dayOfChallenge` (exactly one).

    Fasting tasks must name a `fastingType`.
    """
    return engine.create_task(db, challenge_id, task_in, current_user)


@router.patch("/{task_id}", response_model=DailyTaskRead, summary="Edit a daily task")
def update_task(
    challenge_id: UUID,
    task_id: UUID,
    task_in: DailyTaskUpdate,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """Only tasks without completions can be edited; otherwise create a new task."""
    return engine.update_task(db, challenge_id, task_id, task_in, current_user)


@router.delete("/{task_id}", response_model=SuccessResponse, summary="Delete a daily task")
def delete_task(
    challenge_id: UUID,
    task_id: UUID,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    engine.delete_task(db, challenge_id, task_id, current_user)
    return SuccessResponse(message="Task deleted")


# =====================================================================
# ENGAGEMENT
# =====================================================================

@router.get(
    "/engagement",
    response_model=List[DailyTaskEngagementRead],
    summary="Engagement of a day's tasks"
)
def get_daily_task_engagement(
    challenge_id: UUID,
    on_date: Optional[date] = Query(None, alias="date"),
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """Tasks of the day with participants, completions and engagement rate."""
    return engine.get_daily_task_engagement(db, challenge_id, current_user, on_date=on_date)


@router.get(
    "/{task_id}/engagement",
    response_model=TaskEngagementRead,
    summary="Engagement of one task"
)
def get_task_engagement(
    challenge_id: UUID,
    task_id: UUID,
    on_date: Optional[date] = Query(None, alias="date"),
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """Defaults to the calendar day the task is scheduled on."""
    return engine.get_task_engagement(db, challenge_id, task_id, current_user, on_date=on_date)


@router.post(
    "/{task_id}/engagement/refresh",
    response_model=TaskEngagementSnapshot,
    summary="Recompute task engagement"
)
def refresh_task_engagement(
    challenge_id: UUID,
    task_id: UUID,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    return engine.update_task_engagement_snapshot(db, challenge_id, task_id, current_user)
