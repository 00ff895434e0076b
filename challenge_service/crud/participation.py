# crud/participation.py
from typing import Optional, List, Dict
from uuid import UUID
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from challenge_service.core.exceptions import DatabaseConflictError
from challenge_service.models.challenge import Challenge, Participation
from challenge_service.crud.challenge import crud_challenge


class CRUDParticipation:
    """CRUD operations for challenge participations (join records)."""

    def create(
        self, db: Session, *, challenge: Challenge, user_id: UUID, joined_at: datetime
    ) -> Participation:
        """
        Insert a participation and refresh the challenge's participant count.

        Raises:
            DatabaseConflictError: If the (challenge, user) pair already exists
        """
        db_obj = Participation(
            challenge_id=challenge.id,
            user_id=user_id,
            joined_at=joined_at,
            progress=0,
            completed=False,
        )
        try:
            db.add(db_obj)
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            raise DatabaseConflictError("Participation already exists") from exc

        crud_challenge.refresh_participant_count(db, db_obj=challenge)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get(
        self, db: Session, *, challenge_id: UUID, user_id: UUID, for_update: bool = False
    ) -> Optional[Participation]:
        query = db.query(Participation).filter(
            Participation.challenge_id == challenge_id,
            Participation.user_id == user_id,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_challenge(self, db: Session, *, challenge_id: UUID) -> List[Participation]:
        return (
            db.query(Participation)
            .filter(Participation.challenge_id == challenge_id)
            .order_by(Participation.joined_at)
            .all()
        )

    def get_for_user(
        self, db: Session, *, user_id: UUID, challenge_ids: List[UUID]
    ) -> Dict[UUID, Participation]:
        """A user's participations among the given challenges, keyed by challenge id."""
        if not challenge_ids:
            return {}
        rows = (
            db.query(Participation)
            .filter(
                Participation.user_id == user_id,
                Participation.challenge_id.in_(challenge_ids),
            )
            .all()
        )
        return {row.challenge_id: row for row in rows}

    def count_by_challenge(self, db: Session, *, challenge_id: UUID) -> int:
        count = (
            db.query(func.count(Participation.id))
            .filter(Participation.challenge_id == challenge_id)
            .scalar()
        )
        return count or 0

    def set_progress(
        self, db: Session, *, db_obj: Participation, progress: int, goal: float, synced_at: datetime
    ) -> Participation:
        """Write recomputed progress (no commit; caller owns the transaction)."""
        db_obj.progress = progress
        db_obj.completed = progress >= goal
        db_obj.last_synced_at = synced_at
        return db_obj


# Create singleton instance
crud_participation = CRUDParticipation()
