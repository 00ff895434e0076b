# challenge_service/api/routers/challenges.py
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from challenge_service.core.config import get_db
from challenge_service.core.security import get_current_user, get_current_admin_user
from challenge_service.services.challenge_engine import ChallengeEngine, get_challenge_engine
from challenge_service.models.user_auth import UserAuth
from challenge_service.schemas import (
    ChallengeCreate,
    ChallengeUpdate,
    ChallengeRead,
    ChallengeListFilter,
    ParticipationRead,
    MyProgressRead,
    LeaderboardEntryRead,
    SuccessResponse,
)

router = APIRouter(prefix="/challenges", tags=["Challenges"])


# =====================================================================
# CREATE
# =====================================================================

@router.post(
    "",
    response_model=ChallengeRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a challenge"
)
def create_challenge(
    challenge_in: ChallengeCreate,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """
    Create a new challenge owned by the caller.

    `endDate` is derived as `startDate + duration` days and never changes.
    """
    challenge = engine.create_challenge(db, challenge_in, current_user)
    return engine.challenge_view(challenge)


@router.post(
    "/admin",
    response_model=ChallengeRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a challenge with daily tasks (Admin only)"
)
def create_admin_challenge(
    challenge_in: ChallengeCreate,
    current_user: UserAuth = Depends(get_current_admin_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """
    Create a challenge together with its `dailyTasks`.

    All tasks are validated first; nothing is written if any is invalid.
    """
    challenge = engine.create_challenge(db, challenge_in, current_user, allow_tasks=True)
    return engine.challenge_view(challenge)


# =====================================================================
# READ
# =====================================================================

@router.get("", response_model=List[ChallengeRead], summary="List challenges")
def list_challenges(
    filter: ChallengeListFilter = Query(ChallengeListFilter.all),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """List all challenges, the ones the caller joined, or the ones they created."""
    return engine.list_challenges(db, current_user, list_filter=filter, skip=skip, limit=limit)


@router.get("/my-challenges", response_model=List[ChallengeRead], summary="Challenges I joined")
def get_my_challenges(
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    return engine.list_challenges(db, current_user, list_filter=ChallengeListFilter.joined)


@router.get("/{challenge_id}", response_model=ChallengeRead, summary="Get a challenge")
def get_challenge(
    challenge_id: UUID,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """Challenge with its derived status, days remaining and the caller's participation."""
    return engine.get_challenge(db, challenge_id, current_user)


# =====================================================================
# UPDATE / DELETE
# =====================================================================

@router.patch("/{challenge_id}", response_model=ChallengeRead, summary="Update a challenge")
def update_challenge(
    challenge_id: UUID,
    challenge_in: ChallengeUpdate,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """
    Update name, description, goal or image (creator or admin).

    Dates, duration and type are immutable.
    """
    return engine.update_challenge(db, challenge_id, challenge_in, current_user)


@router.delete("/{challenge_id}", response_model=SuccessResponse, summary="Delete a challenge")
def delete_challenge(
    challenge_id: UUID,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """Hard delete, cascading to tasks, participations and completions (creator or admin)."""
    engine.delete_challenge(db, challenge_id, current_user)
    return SuccessResponse(message="Challenge deleted")


# =====================================================================
# PARTICIPATION
# =====================================================================

@router.post(
    "/{challenge_id}/join",
    response_model=ParticipationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Join a challenge"
)
def join_challenge(
    challenge_id: UUID,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """
    Join an upcoming or active challenge.

    - 409 `already_joined` if the caller is already a participant
    - 409 `challenge_ended` once the end date has passed
    """
    return engine.join_challenge(db, challenge_id, current_user)


@router.get("/{challenge_id}/progress", response_model=MyProgressRead, summary="My progress")
def get_my_progress(
    challenge_id: UUID,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    return engine.get_my_progress(db, challenge_id, current_user)


@router.post("/{challenge_id}/sync", response_model=ParticipationRead, summary="Recompute my progress")
def sync_progress(
    challenge_id: UUID,
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """Recompute the caller's progress from their recorded completions."""
    return engine.sync_progress(db, challenge_id, current_user)


@router.get(
    "/{challenge_id}/leaderboard",
    response_model=List[LeaderboardEntryRead],
    summary="Challenge leaderboard"
)
def get_leaderboard(
    challenge_id: UUID,
    limit: Optional[int] = Query(None, ge=1, le=500),
    current_user: UserAuth = Depends(get_current_user),
    engine: ChallengeEngine = Depends(get_challenge_engine),
    db: Session = Depends(get_db)
):
    """
    Participants ranked by progress.

    Ties go to whoever joined first, then to user id order.
    """
    return engine.get_leaderboard(db, challenge_id, limit=limit)
