# crud/task_completion.py
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date, datetime
from sqlalchemy.orm import Session
from sqlalchemy import func, distinct
from sqlalchemy.exc import IntegrityError

from challenge_service.core.exceptions import DatabaseConflictError
from challenge_service.models.challenge import Participation
from challenge_service.models.daily_task import DailyTask
from challenge_service.models.task_completion import TaskCompletion
from challenge_service.crud.participation import crud_participation


class CRUDTaskCompletion:
    """CRUD operations for TaskCompletion records."""

    # =====================================================================
    # CREATE OPERATIONS
    # =====================================================================

    def create_with_progress(
        self,
        db: Session,
        *,
        obj_in: TaskCompletion,
        participation: Participation,
        goal: float,
        accumulate_points: bool,
        synced_at: datetime,
    ) -> TaskCompletion:
        """
        Insert a completion and recompute the participant's progress in the
        same transaction.

        The unique key (task_id, user_id, completed_date) is the
        serialization point: of two concurrent inserts exactly one flushes,
        the other is rolled back without touching progress.

        Args:
            db: Database session
            obj_in: Unsaved TaskCompletion with the points snapshot set
            participation: Participation row of the completing user
            goal: Challenge goal, used for the completed flag
            accumulate_points: Sum points instead of counting days
            synced_at: Timestamp recorded on the participation

        Returns:
            Persisted TaskCompletion instance

        Raises:
            DatabaseConflictError: If the user already completed the task that day
        """
        try:
            db.add(obj_in)
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            raise DatabaseConflictError("Task already completed for this date") from exc

        progress = self.compute_progress(
            db,
            challenge_id=participation.challenge_id,
            user_id=participation.user_id,
            accumulate_points=accumulate_points,
        )
        crud_participation.set_progress(
            db, db_obj=participation, progress=progress, goal=goal, synced_at=synced_at
        )

        db.commit()
        db.refresh(obj_in)
        return obj_in

    # =====================================================================
    # READ OPERATIONS
    # =====================================================================

    def get_by_task(
        self, db: Session, *, task_id: UUID, on_date: Optional[date] = None
    ) -> List[TaskCompletion]:
        query = db.query(TaskCompletion).filter(TaskCompletion.task_id == task_id)
        if on_date is not None:
            query = query.filter(TaskCompletion.completed_date == on_date)
        return query.order_by(TaskCompletion.completed_at).all()

    def get_by_user_in_challenge(
        self,
        db: Session,
        *,
        challenge_id: UUID,
        user_id: UUID,
        on_date: Optional[date] = None,
    ) -> List[TaskCompletion]:
        query = (
            db.query(TaskCompletion)
            .join(DailyTask, TaskCompletion.task_id == DailyTask.id)
            .filter(
                DailyTask.challenge_id == challenge_id,
                TaskCompletion.user_id == user_id,
            )
        )
        if on_date is not None:
            query = query.filter(TaskCompletion.completed_date == on_date)
        return query.order_by(TaskCompletion.completed_date, TaskCompletion.completed_at).all()

    def count_distinct_users(self, db: Session, *, task_id: UUID, on_date: date) -> int:
        count = (
            db.query(func.count(distinct(TaskCompletion.user_id)))
            .filter(
                TaskCompletion.task_id == task_id,
                TaskCompletion.completed_date == on_date,
            )
            .scalar()
        )
        return count or 0

    # =====================================================================
    # AGGREGATES
    # =====================================================================

    def _progress_expression(self, accumulate_points: bool):
        if accumulate_points:
            return func.coalesce(func.sum(TaskCompletion.points), 0)
        return func.count(distinct(TaskCompletion.completed_date))

    def compute_progress(
        self, db: Session, *, challenge_id: UUID, user_id: UUID, accumulate_points: bool
    ) -> int:
        """Points total or distinct completed days of one user in a challenge."""
        value = (
            db.query(self._progress_expression(accumulate_points))
            .select_from(TaskCompletion)
            .join(DailyTask, TaskCompletion.task_id == DailyTask.id)
            .filter(
                DailyTask.challenge_id == challenge_id,
                TaskCompletion.user_id == user_id,
            )
            .scalar()
        )
        return int(value or 0)

    def compute_progress_by_user(
        self, db: Session, *, challenge_id: UUID, accumulate_points: bool
    ) -> Dict[UUID, int]:
        """Same figure as ``compute_progress`` for every user with completions."""
        rows = (
            db.query(TaskCompletion.user_id, self._progress_expression(accumulate_points))
            .join(DailyTask, TaskCompletion.task_id == DailyTask.id)
            .filter(DailyTask.challenge_id == challenge_id)
            .group_by(TaskCompletion.user_id)
            .all()
        )
        return {user_id: int(value or 0) for user_id, value in rows}


# Create singleton instance
crud_task_completion = CRUDTaskCompletion()
