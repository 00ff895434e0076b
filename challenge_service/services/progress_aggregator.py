# services/progress_aggregator.py
"""
Derived challenge figures: task engagement, leaderboards, completion details.

Nothing computed here is persisted. Every call reads the current
participation and completion rows, so figures never drift from the source
rows; they may lag a concurrent write by one request at most.
"""
import math
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session

from challenge_service.models.challenge import Challenge, Participation
from challenge_service.models.daily_task import DailyTask
from challenge_service.crud.participation import crud_participation
from challenge_service.crud.daily_task import crud_daily_task
from challenge_service.crud.task_completion import crud_task_completion
from challenge_service.core.timewindow import day_of_challenge
from challenge_service.services.identity import IdentityProvider


def engagement_rate(completed_count: int, total_participants: int) -> int:
    """Whole-number percentage in [0, 100]; 0 when nobody participates."""
    if total_participants <= 0:
        return 0
    rate = math.floor(completed_count / total_participants * 100 + 0.5)
    return max(0, min(100, rate))


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def rank_entries(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Order leaderboard entries and assign 1-based ranks.

    Progress descending, then earliest ``joined_at``, then ``user_id`` in
    string order, so every entry gets a distinct rank.
    """
    ordered = sorted(
        entries,
        key=lambda entry: (
            -entry["progress"],
            _naive_utc(entry["joined_at"]),
            str(entry["user_id"]),
        ),
    )
    for position, entry in enumerate(ordered, start=1):
        entry["rank"] = position
    return ordered


class ProgressAggregator:
    """Computes engagement and standings from live rows."""

    def __init__(self, identity: IdentityProvider):
        self.identity = identity

    # =====================================================================
    # ENGAGEMENT
    # =====================================================================

    def get_task_engagement(
        self,
        db: Session,
        *,
        task: DailyTask,
        on_date: date,
        total_participants: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Engagement of one task on one calendar date.

        Args:
            db: Database session
            task: Task to measure
            on_date: Calendar date of the completions to count
            total_participants: Participant count if already known

        Returns:
            Dict with task_id, date, total_participants, completed_count,
            engagement_rate
        """
        if total_participants is None:
            total_participants = crud_participation.count_by_challenge(
                db, challenge_id=task.challenge_id
            )
        completed_count = crud_task_completion.count_distinct_users(
            db, task_id=task.id, on_date=on_date
        )
        return {
            "task_id": task.id,
            "date": on_date,
            "total_participants": total_participants,
            "completed_count": completed_count,
            "engagement_rate": engagement_rate(completed_count, total_participants),
        }

    def get_daily_task_engagement(
        self, db: Session, *, challenge: Challenge, on_date: date
    ) -> List[Dict[str, Any]]:
        """Every task scheduled on ``on_date`` with its engagement figures."""
        tasks = crud_daily_task.get_for_day(
            db,
            challenge_id=challenge.id,
            on_date=on_date,
            day_index=day_of_challenge(challenge.start_date, on_date),
        )
        total_participants = crud_participation.count_by_challenge(
            db, challenge_id=challenge.id
        )

        results = []
        for task in tasks:
            engagement = self.get_task_engagement(
                db, task=task, on_date=on_date, total_participants=total_participants
            )
            row = {
                column.name: getattr(task, column.name)
                for column in DailyTask.__table__.columns
            }
            row.update(engagement)
            results.append(row)
        return results

    # =====================================================================
    # LEADERBOARD
    # =====================================================================

    def get_leaderboard(
        self, db: Session, *, challenge: Challenge, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Ranked standings of a challenge.

        Progress is the point total for point-accumulation challenge types
        and the number of distinct completed days otherwise. Participants
        without completions are listed with zero progress.
        """
        participations: List[Participation] = crud_participation.get_by_challenge(
            db, challenge_id=challenge.id
        )
        progress_by_user = crud_task_completion.compute_progress_by_user(
            db,
            challenge_id=challenge.id,
            accumulate_points=challenge.accumulates_points,
        )
        identities = self.identity.resolve_many(
            db, [participation.user_id for participation in participations]
        )

        entries = []
        for participation in participations:
            progress = progress_by_user.get(participation.user_id, 0)
            identity = identities[participation.user_id]
            entries.append({
                "user_id": participation.user_id,
                "user_name": identity.display_name,
                "photo_url": identity.photo_url,
                "progress": progress,
                "completed": progress >= challenge.goal,
                "joined_at": participation.joined_at,
            })

        ranked = rank_entries(entries)
        if limit is not None:
            ranked = ranked[:limit]
        return ranked

    # =====================================================================
    # COMPLETION DETAILS
    # =====================================================================

    def get_completion_details(
        self, db: Session, *, task: DailyTask, on_date: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        completions = crud_task_completion.get_by_task(db, task_id=task.id, on_date=on_date)
        identities = self.identity.resolve_many(
            db, [completion.user_id for completion in completions]
        )

        details = []
        for completion in completions:
            identity = identities[completion.user_id]
            details.append({
                "id": completion.id,
                "task_id": completion.task_id,
                "user_id": completion.user_id,
                "completed_date": completion.completed_date,
                "actual_value": completion.actual_value,
                "notes": completion.notes,
                "time_spent_minutes": completion.time_spent_minutes,
                "points": completion.points,
                "completed_at": completion.completed_at,
                "user_name": identity.display_name,
                "user_email": identity.email,
                "user_photo_url": identity.photo_url,
            })
        return details

    @staticmethod
    def snapshot(engagement: Dict[str, Any], computed_at: datetime) -> Dict[str, Any]:
        return {**engagement, "computed_at": computed_at}
