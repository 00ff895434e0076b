# crud/daily_task.py
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy import or_, func

from challenge_service.models.daily_task import DailyTask
from challenge_service.models.task_completion import TaskCompletion


class CRUDDailyTask:
    """CRUD operations for DailyTask definitions."""

    # =====================================================================
    # CREATE OPERATIONS
    # =====================================================================

    def create(self, db: Session, *, challenge_id: UUID, obj_in: Dict[str, Any]) -> DailyTask:
        db_obj = DailyTask(challenge_id=challenge_id, **obj_in)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    # =====================================================================
    # READ OPERATIONS
    # =====================================================================

    def get(self, db: Session, id: UUID) -> Optional[DailyTask]:
        return db.query(DailyTask).filter(DailyTask.id == id).first()

    def get_for_day(
        self, db: Session, *, challenge_id: UUID, on_date: date, day_index: int
    ) -> List[DailyTask]:
        """
        Tasks scheduled on one calendar day.

        A task matches when it is addressed by the calendar date itself or by
        the day index that date resolves to; callers pass both forms of the
        same day.

        Args:
            db: Database session
            challenge_id: Owning challenge
            on_date: Calendar date of the day
            day_index: 1-based day of the challenge for ``on_date``

        Returns:
            List of DailyTask instances, required tasks first
        """
        return (
            db.query(DailyTask)
            .filter(
                DailyTask.challenge_id == challenge_id,
                or_(
                    DailyTask.task_date == on_date,
                    DailyTask.day_of_challenge == day_index,
                ),
            )
            .order_by(DailyTask.is_required.desc(), DailyTask.created_at)
            .all()
        )

    def count_completions(self, db: Session, *, task_id: UUID) -> int:
        count = (
            db.query(func.count(TaskCompletion.id))
            .filter(TaskCompletion.task_id == task_id)
            .scalar()
        )
        return count or 0

    # =====================================================================
    # UPDATE / DELETE OPERATIONS
    # =====================================================================

    def update(self, db: Session, *, db_obj: DailyTask, update_data: Dict[str, Any]) -> DailyTask:
        for field, value in update_data.items():
            setattr(db_obj, field, value)

        db.commit()
        db.refresh(db_obj)
        return db_obj

    def delete(self, db: Session, *, db_obj: DailyTask) -> None:
        db.delete(db_obj)
        db.commit()


# Create singleton instance
crud_daily_task = CRUDDailyTask()
