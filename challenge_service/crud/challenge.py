# crud/challenge.py
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime, timezone
from sqlalchemy.orm import Session
from sqlalchemy import func, desc

from challenge_service.models.challenge import Challenge, Participation
from challenge_service.models.daily_task import DailyTask
from challenge_service.schemas.challenge import ChallengeListFilter


class CRUDChallenge:
    """CRUD operations for the Challenge model."""

    # =====================================================================
    # CREATE OPERATIONS
    # =====================================================================

    def create(
        self, db: Session, *, obj_in: Dict[str, Any], tasks: Optional[List[Dict[str, Any]]] = None
    ) -> Challenge:
        """
        Create a challenge and, optionally, its daily tasks in one transaction.

        Args:
            db: Database session
            obj_in: Validated challenge column values
            tasks: Validated task column values (without challenge_id)

        Returns:
            Created Challenge instance
        """
        db_obj = Challenge(**obj_in)
        db.add(db_obj)
        db.flush()

        for task_data in tasks or []:
            db.add(DailyTask(challenge_id=db_obj.id, **task_data))

        db.commit()
        db.refresh(db_obj)
        return db_obj

    # =====================================================================
    # READ OPERATIONS
    # =====================================================================

    def get(self, db: Session, id: UUID) -> Optional[Challenge]:
        return db.query(Challenge).filter(Challenge.id == id).first()

    def get_multi(
        self,
        db: Session,
        *,
        list_filter: ChallengeListFilter = ChallengeListFilter.all,
        user_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Challenge]:
        """
        List challenges, newest start date first.

        Args:
            db: Database session
            list_filter: all / joined (by user_id) / created (by user_id)
            user_id: User the joined/created filters apply to
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            List of Challenge instances
        """
        query = db.query(Challenge)

        if list_filter == ChallengeListFilter.joined:
            query = query.join(Participation).filter(Participation.user_id == user_id)
        elif list_filter == ChallengeListFilter.created:
            query = query.filter(Challenge.creator_id == user_id)

        return (
            query.order_by(desc(Challenge.start_date), desc(Challenge.created_at))
            .offset(skip)
            .limit(limit)
            .all()
        )

    # =====================================================================
    # UPDATE OPERATIONS
    # =====================================================================

    def update(self, db: Session, *, db_obj: Challenge, update_data: Dict[str, Any]) -> Challenge:
        for field, value in update_data.items():
            setattr(db_obj, field, value)

        db_obj.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def refresh_participant_count(self, db: Session, *, db_obj: Challenge) -> int:
        """Recompute the cached participant count from participation rows (no commit)."""
        count = (
            db.query(func.count(Participation.id))
            .filter(Participation.challenge_id == db_obj.id)
            .scalar()
        )
        db_obj.participant_count = count or 0
        return db_obj.participant_count

    # =====================================================================
    # DELETE OPERATIONS
    # =====================================================================

    def delete(self, db: Session, *, db_obj: Challenge) -> None:
        """Hard delete; tasks, participations and completions cascade."""
        db.delete(db_obj)
        db.commit()


# Create singleton instance
crud_challenge = CRUDChallenge()
