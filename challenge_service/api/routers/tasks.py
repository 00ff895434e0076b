# challenge_service/api/routers/tasks.py
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
    DailyTaskRead,
    TaskCompletionCreate,
    TaskCompletionRead,
    CompletionDetailRead,
    ActivateFastingRequest,
    SuccessResponse,
)

router = APIRouter(prefix="/challenges/{challenge_id}", tags=["Challenge Tasks"])


# ====================================================
# TASKS OF A DAY
# ====================================================

@router.get("/tasks", response_model=List[DailyTaskRead], summary="Tasks for a day")
def get_tasks_for_day(
    challenge_id: UUID,
    on_date: Optional[date] = Query(None, alias="date", description="Calendar date YYYY-MM-DD"),
    day: Optional[int] = Query(None, ge=1, description="1-based day of the challenge"),
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """
    Tasks scheduled on one day, addressed by `date` or by `day`.

    Both forms return the same tasks for the same calendar day. Without
    either, today's tasks are returned.
    """
    return engine.get_tasks_for_day(db, challenge_id, on_date=on_date, day=day)


# ====================================================
# COMPLETIONS
# ====================================================

@router.post(
    "/tasks/{task_id}/complete",
    response_model=TaskCompletionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Complete a task"
)
def complete_task(
    challenge_id: UUID,
    task_id: UUID,
    completion_in: Optional[TaskCompletionCreate] = None,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """
    Record today's completion of a task.

    - 409 `already_completed_today` on a repeat for the same day
    - 409 `challenge_ended` / `challenge_not_active` outside the challenge window
    - 409 `task_not_scheduled` if the task belongs to another day
    - 403 `not_a_participant` if the caller has not joined
    """
    return engine.complete_task(db, challenge_id, task_id, current_user, completion_in)


@router.get(
    "/my-completions",
    response_model=List[TaskCompletionRead],
    summary="My completions"
)
def get_my_completions(
    challenge_id: UUID,
    on_date: Optional[date] = Query(None, alias="date"),
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    return engine.get_my_completions(db, challenge_id, current_user, on_date=on_date)


@router.get(
    "/tasks/{task_id}/completions",
    response_model=List[CompletionDetailRead],
    summary="Task completions (creator/admin)"
)
def get_completion_details(
    challenge_id: UUID,
    task_id: UUID,
    on_date: Optional[date] = Query(None, alias="date"),
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """Every completion of a task with the completing user's display fields."""
    return engine.get_completion_details(db, challenge_id, task_id, current_user, on_date=on_date)


# ====================================================
# FASTING
# ====================================================

@router.post(
    "/activate-fasting",
    response_model=SuccessResponse,
    summary="Start a fasting timer"
)
def activate_fasting(
    challenge_id: UUID,
    request: ActivateFastingRequest,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    engine.activate_fasting(db, challenge_id, request.fasting_type, current_user)
    return SuccessResponse(message=f"Started {request.fasting_type} fasting timer")
