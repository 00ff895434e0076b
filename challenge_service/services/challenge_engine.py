# =====================================================================
# SERVICE LAYER - services/challenge_engine.py
# =====================================================================

import functools
import logging
from datetime import date, datetime
from typing import Optional, List, Dict, Any, Callable, Union
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError

from challenge_service.core.config import settings
from challenge_service.core.exceptions import (
    DatabaseConflictError,
    UnavailableError,
    ChallengeNotFoundError,
    TaskNotFoundError,
    ConflictError,
    AlreadyJoinedError,
    AlreadyCompletedTodayError,
    ChallengeEndedError,
    ChallengeNotActiveError,
    TaskNotScheduledError,
    ForbiddenError,
    NotAParticipantError,
    InvalidSpecError,
)
from challenge_service.core.timewindow import (
    ChallengeStatus,
    as_date,
    challenge_status,
    compute_end_date,
    date_for_day,
    day_of_challenge,
    days_remaining,
    utc_now,
)
from challenge_service.models.user_auth import UserAuth, UserRole
from challenge_service.models.challenge import Challenge, Participation
from challenge_service.models.daily_task import DailyTask, TaskType
from challenge_service.models.task_completion import TaskCompletion
from challenge_service.schemas.challenge import (
    ChallengeCreate,
    ChallengeUpdate,
    ChallengeListFilter,
)
from challenge_service.schemas.daily_task import DailyTaskCreate, DailyTaskUpdate
from challenge_service.schemas.task_completion import TaskCompletionCreate
from challenge_service.crud.challenge import crud_challenge
from challenge_service.crud.participation import crud_participation
from challenge_service.crud.daily_task import crud_daily_task
from challenge_service.crud.task_completion import crud_task_completion
from challenge_service.services.identity import IdentityProvider, DirectoryIdentityProvider
from challenge_service.services.progress_aggregator import ProgressAggregator
from challenge_service.services.side_effects import SideEffectDispatcher
from challenge_service.services.fasting_client import build_fasting_client

logger = logging.getLogger(__name__)

DayLike = Union[date, datetime, str]

TASK_COLUMNS = (
    "task_type", "title", "description", "is_required", "points",
    "target_value", "target_unit", "exercise_type", "meal_type",
    "fasting_type", "task_date", "day_of_challenge",
)


def translate_store_errors(method):
    """Surface store I/O failures as UnavailableError after rolling back."""
    @functools.wraps(method)
    def wrapper(self, db: Session, *args, **kwargs):
        try:
            return method(self, db, *args, **kwargs)
        except OperationalError as exc:
            db.rollback()
            logger.error(f"Store failure in {method.__name__}: {exc}")
            raise UnavailableError("Store temporarily unavailable, please retry") from exc
    return wrapper


class ChallengeEngine:
    """
    Facade over challenges, participations, daily tasks and completions.

    Owns permission checks, input validation, the completion transaction
    and the translation of store errors into the domain taxonomy.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        dispatcher: SideEffectDispatcher,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.identity = identity
        self.dispatcher = dispatcher
        self.aggregator = ProgressAggregator(identity)
        self.clock = clock

    # =====================================================================
    # HELPERS
    # =====================================================================

    def _today(self) -> date:
        return self.clock().date()

    @staticmethod
    def _is_admin(user: UserAuth) -> bool:
        return user.role == UserRole.admin

    def _can_manage(self, challenge: Challenge, user: UserAuth) -> bool:
        """Creators and admins manage a challenge and its tasks."""
        return self._is_admin(user) or challenge.creator_id == user.id

    def _require_manage(self, challenge: Challenge, user: UserAuth, action: str) -> None:
        if not self._can_manage(challenge, user):
            raise ForbiddenError(f"Only the challenge creator or an admin can {action}")

    def _get_challenge(self, db: Session, challenge_id: UUID) -> Challenge:
        challenge = crud_challenge.get(db, id=challenge_id)
        if not challenge:
            raise ChallengeNotFoundError()
        return challenge

    def _get_task(self, db: Session, challenge: Challenge, task_id: UUID) -> DailyTask:
        task = crud_daily_task.get(db, id=task_id)
        if not task or task.challenge_id != challenge.id:
            raise TaskNotFoundError()
        return task

    def _require_participation(
        self, db: Session, challenge: Challenge, user_id: UUID, for_update: bool = False
    ) -> Participation:
        participation = crud_participation.get(
            db, challenge_id=challenge.id, user_id=user_id, for_update=for_update
        )
        if not participation:
            raise NotAParticipantError()
        return participation

    @staticmethod
    def _last_day(challenge: Challenge) -> int:
        return day_of_challenge(challenge.start_date, challenge.end_date)

    def _current_day(self, challenge: Challenge, today: date) -> int:
        """Today's day index, clamped to the challenge window."""
        return max(1, min(day_of_challenge(challenge.start_date, today), self._last_day(challenge)))

    def task_date(self, challenge: Challenge, task: DailyTask) -> date:
        """Calendar date a task is scheduled on, whichever addressing mode it uses."""
        if task.task_date is not None:
            return task.task_date
        return date_for_day(challenge.start_date, task.day_of_challenge)

    def _parse_date(self, value: DayLike, field: str) -> date:
        try:
            return as_date(value)
        except (TypeError, ValueError):
            raise InvalidSpecError(f"{field} is not a valid date: {value!r}")

    def _validate_task(self, challenge_start: date, challenge_end: date, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate task column values against a challenge window.

        Returns:
            Cleaned column values with task_date parsed

        Raises:
            InvalidSpecError: On any violated rule
        """
        title = (data.get("title") or "").strip()
        if not title:
            raise InvalidSpecError("Task title is required")

        points = data.get("points")
        if points is None or points < 0:
            raise InvalidSpecError("Task points must be zero or greater")

        task_date = data.get("task_date")
        day = data.get("day_of_challenge")
        if (task_date is None) == (day is None):
            raise InvalidSpecError("Set exactly one of taskDate or dayOfChallenge")

        last_day = day_of_challenge(challenge_start, challenge_end)
        if task_date is not None:
            task_date = self._parse_date(task_date, "taskDate")
            if not challenge_start <= task_date <= challenge_end:
                raise InvalidSpecError("taskDate must fall within the challenge dates")
        elif not 1 <= day <= last_day:
            raise InvalidSpecError(f"dayOfChallenge must be between 1 and {last_day}")

        task_type = data.get("task_type") or TaskType.other
        if task_type == TaskType.fasting and not data.get("fasting_type"):
            raise InvalidSpecError("Fasting tasks need a fastingType")

        target_value = data.get("target_value")
        if target_value is not None and target_value < 0:
            raise InvalidSpecError("targetValue must be zero or greater")

        cleaned = {column: data.get(column) for column in TASK_COLUMNS}
        cleaned.update(
            title=title,
            task_type=task_type,
            task_date=task_date,
            is_required=True if data.get("is_required") is None else data["is_required"],
        )
        return cleaned

    def challenge_view(
        self, challenge: Challenge, participation: Optional[Participation] = None
    ) -> Dict[str, Any]:
        """Challenge columns plus the figures derived from the clock."""
        today = self._today()
        view = {
            column.name: getattr(challenge, column.name)
            for column in Challenge.__table__.columns
        }
        view.update(
            status=challenge_status(challenge.start_date, challenge.end_date, today),
            days_remaining=days_remaining(challenge.end_date, today),
            current_day=self._current_day(challenge, today),
            participation=participation,
        )
        return view

    # =====================================================================
    # CHALLENGES
    # =====================================================================

    @translate_store_errors
    def create_challenge(
        self,
        db: Session,
        challenge_in: ChallengeCreate,
        requesting_user: UserAuth,
        allow_tasks: bool = False,
    ) -> Challenge:
        """
        Create a challenge, optionally with its daily tasks.

        Everything is validated before the first write, so an invalid task
        never leaves a half-created challenge behind.

        Raises:
            InvalidSpecError: On invalid challenge or task input
            ForbiddenError: If tasks are embedded by a non-admin
        """
        name = (challenge_in.name or "").strip()
        if not name:
            raise InvalidSpecError("Challenge name is required")
        if challenge_in.duration is None or challenge_in.duration <= 0:
            raise InvalidSpecError("Duration must be a positive number of days")
        if challenge_in.goal is None or challenge_in.goal < 0:
            raise InvalidSpecError("Goal must be zero or greater")

        start_date = self._parse_date(challenge_in.start_date, "startDate")
        end_date = compute_end_date(start_date, challenge_in.duration)

        tasks = []
        if challenge_in.daily_tasks:
            if not allow_tasks or not self._is_admin(requesting_user):
                raise ForbiddenError("Only admins can create challenges with daily tasks")
            tasks = [
                self._validate_task(start_date, end_date, task_in.model_dump())
                for task_in in challenge_in.daily_tasks
            ]

        challenge = crud_challenge.create(
            db,
            obj_in={
                "name": name,
                "description": challenge_in.description,
                "type": challenge_in.type,
                "goal": challenge_in.goal,
                "duration": challenge_in.duration,
                "start_date": start_date,
                "end_date": end_date,
                "creator_id": requesting_user.id,
                "image_url": challenge_in.image_url,
                "participant_count": 0,
            },
            tasks=tasks,
        )
        logger.info(f"Challenge {challenge.id} created by {requesting_user.id} with {len(tasks)} tasks")
        return challenge

    @translate_store_errors
    def get_challenge(self, db: Session, challenge_id: UUID, requesting_user: UserAuth) -> Dict[str, Any]:
        challenge = self._get_challenge(db, challenge_id)
        participation = crud_participation.get(
            db, challenge_id=challenge.id, user_id=requesting_user.id
        )
        return self.challenge_view(challenge, participation)

    @translate_store_errors
    def list_challenges(
        self,
        db: Session,
        requesting_user: UserAuth,
        list_filter: ChallengeListFilter = ChallengeListFilter.all,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        challenges = crud_challenge.get_multi(
            db, list_filter=list_filter, user_id=requesting_user.id, skip=skip, limit=limit
        )
        participations = crud_participation.get_for_user(
            db, user_id=requesting_user.id, challenge_ids=[c.id for c in challenges]
        )
        return [
            self.challenge_view(challenge, participations.get(challenge.id))
            for challenge in challenges
        ]

    @translate_store_errors
    def update_challenge(
        self,
        db: Session,
        challenge_id: UUID,
        challenge_in: ChallengeUpdate,
        requesting_user: UserAuth,
    ) -> Dict[str, Any]:
        challenge = self._get_challenge(db, challenge_id)
        self._require_manage(challenge, requesting_user, "edit this challenge")

        update_data = challenge_in.model_dump(exclude_unset=True)
        if "name" in update_data:
            update_data["name"] = (update_data["name"] or "").strip()
            if not update_data["name"]:
                raise InvalidSpecError("Challenge name is required")
        if "goal" in update_data and (update_data["goal"] is None or update_data["goal"] < 0):
            raise InvalidSpecError("Goal must be zero or greater")

        goal_changed = "goal" in update_data and update_data["goal"] != challenge.goal
        if goal_changed:
            for participation in crud_participation.get_by_challenge(db, challenge_id=challenge.id):
                participation.completed = participation.progress >= update_data["goal"]

        challenge = crud_challenge.update(db, db_obj=challenge, update_data=update_data)
        participation = crud_participation.get(
            db, challenge_id=challenge.id, user_id=requesting_user.id
        )
        return self.challenge_view(challenge, participation)

    @translate_store_errors
    def delete_challenge(self, db: Session, challenge_id: UUID, requesting_user: UserAuth) -> None:
        """Hard delete with cascade to tasks, participations and completions."""
        challenge = self._get_challenge(db, challenge_id)
        self._require_manage(challenge, requesting_user, "delete this challenge")
        crud_challenge.delete(db, db_obj=challenge)
        logger.info(f"Challenge {challenge_id} deleted by {requesting_user.id}")

    # =====================================================================
    # PARTICIPATION
    # =====================================================================

    @translate_store_errors
    def join_challenge(self, db: Session, challenge_id: UUID, requesting_user: UserAuth) -> Participation:
        """
        Join a challenge that has not ended.

        A repeated join is always reported as AlreadyJoined; the unique
        (challenge, user) key guarantees a single row even under races.
        """
        challenge = self._get_challenge(db, challenge_id)
        now = self.clock()
        if challenge_status(challenge.start_date, challenge.end_date, now) == ChallengeStatus.ended:
            raise ChallengeEndedError("Cannot join a challenge that has ended")

        if crud_participation.get(db, challenge_id=challenge.id, user_id=requesting_user.id):
            raise AlreadyJoinedError()

        try:
            participation = crud_participation.create(
                db, challenge=challenge, user_id=requesting_user.id, joined_at=now
            )
        except DatabaseConflictError:
            raise AlreadyJoinedError()

        logger.info(f"User {requesting_user.id} joined challenge {challenge.id}")
        return participation

    @translate_store_errors
    def get_my_progress(self, db: Session, challenge_id: UUID, requesting_user: UserAuth) -> Dict[str, Any]:
        challenge = self._get_challenge(db, challenge_id)
        participation = self._require_participation(db, challenge, requesting_user.id)

        today = self._today()
        tasks_today = crud_daily_task.get_for_day(
            db,
            challenge_id=challenge.id,
            on_date=today,
            day_index=day_of_challenge(challenge.start_date, today),
        )
        completed_today = crud_task_completion.get_by_user_in_challenge(
            db, challenge_id=challenge.id, user_id=requesting_user.id, on_date=today
        )
        return {
            "challenge_id": challenge.id,
            "status": challenge_status(challenge.start_date, challenge.end_date, today),
            "current_day": self._current_day(challenge, today),
            "days_remaining": days_remaining(challenge.end_date, today),
            "progress": participation.progress,
            "goal": challenge.goal,
            "completed": participation.completed,
            "joined_at": participation.joined_at,
            "tasks_today": len(tasks_today),
            "completed_today": len(completed_today),
        }

    @translate_store_errors
    def sync_progress(self, db: Session, challenge_id: UUID, requesting_user: UserAuth) -> Participation:
        """Recompute the caller's progress from their completion rows."""
        challenge = self._get_challenge(db, challenge_id)
        participation = self._require_participation(db, challenge, requesting_user.id, for_update=True)

        progress = crud_task_completion.compute_progress(
            db,
            challenge_id=challenge.id,
            user_id=requesting_user.id,
            accumulate_points=challenge.accumulates_points,
        )
        crud_participation.set_progress(
            db, db_obj=participation, progress=progress, goal=challenge.goal, synced_at=self.clock()
        )
        db.commit()
        db.refresh(participation)
        return participation

    # =====================================================================
    # DAILY TASKS
    # =====================================================================

    @translate_store_errors
    def create_task(
        self,
        db: Session,
        challenge_id: UUID,
        task_in: DailyTaskCreate,
        requesting_user: UserAuth,
    ) -> DailyTask:
        challenge = self._get_challenge(db, challenge_id)
        self._require_manage(challenge, requesting_user, "create tasks")

        data = self._validate_task(challenge.start_date, challenge.end_date, task_in.model_dump())
        task = crud_daily_task.create(db, challenge_id=challenge.id, obj_in=data)
        logger.info(f"Task {task.id} created in challenge {challenge.id}")
        return task

    @translate_store_errors
    def get_tasks_for_day(
        self,
        db: Session,
        challenge_id: UUID,
        on_date: Optional[DayLike] = None,
        day: Optional[int] = None,
    ) -> List[DailyTask]:
        """
        Tasks of one challenge day, addressed by calendar date or day index.

        Both forms resolve to the same calendar date and return the same
        set. With neither given, today (clamped to the challenge) is used.
        """
        challenge = self._get_challenge(db, challenge_id)

        if on_date is not None and day is not None:
            raise InvalidSpecError("Pass either a date or a day, not both")
        if day is not None:
            if day < 1:
                raise InvalidSpecError("day must be 1 or greater")
            resolved = date_for_day(challenge.start_date, day)
        elif on_date is not None:
            resolved = self._parse_date(on_date, "date")
        else:
            resolved = date_for_day(challenge.start_date, self._current_day(challenge, self._today()))

        return crud_daily_task.get_for_day(
            db,
            challenge_id=challenge.id,
            on_date=resolved,
            day_index=day_of_challenge(challenge.start_date, resolved),
        )

    @translate_store_errors
    def update_task(
        self,
        db: Session,
        challenge_id: UUID,
        task_id: UUID,
        task_in: DailyTaskUpdate,
        requesting_user: UserAuth,
    ) -> DailyTask:
        """
        Edit a task that nobody has completed yet.

        Raises:
            ConflictError: If completions exist; a new task must be created instead
        """
        challenge = self._get_challenge(db, challenge_id)
        self._require_manage(challenge, requesting_user, "edit tasks")
        task = self._get_task(db, challenge, task_id)

        if crud_daily_task.count_completions(db, task_id=task.id):
            raise ConflictError("Task already has completions; create a new task instead")

        patch = task_in.model_dump(exclude_unset=True)
        merged = {column: getattr(task, column) for column in TASK_COLUMNS}
        merged.update(patch)
        # Switching addressing mode clears the other one
        if patch.get("task_date") is not None and "day_of_challenge" not in patch:
            merged["day_of_challenge"] = None
        if patch.get("day_of_challenge") is not None and "task_date" not in patch:
            merged["task_date"] = None

        data = self._validate_task(challenge.start_date, challenge.end_date, merged)
        return crud_daily_task.update(db, db_obj=task, update_data=data)

    @translate_store_errors
    def delete_task(self, db: Session, challenge_id: UUID, task_id: UUID, requesting_user: UserAuth) -> None:
        challenge = self._get_challenge(db, challenge_id)
        self._require_manage(challenge, requesting_user, "delete tasks")
        task = self._get_task(db, challenge, task_id)

        if crud_daily_task.count_completions(db, task_id=task.id):
            raise ConflictError("Tasks with completions cannot be deleted")
        crud_daily_task.delete(db, db_obj=task)

    # =====================================================================
    # COMPLETIONS
    # =====================================================================

    @translate_store_errors
    def complete_task(
        self,
        db: Session,
        challenge_id: UUID,
        task_id: UUID,
        requesting_user: UserAuth,
        completion_in: Optional[TaskCompletionCreate] = None,
        completed_date: Optional[DayLike] = None,
    ) -> TaskCompletion:
        """
        Record that the caller completed a task on a calendar day.

        Steps:
            1. task belongs to the challenge and the caller participates
            2. the challenge is active today and the date is the task's own day
            3. insert keyed on (task, user, date), points snapshotted
            4. progress and completed recomputed in the same transaction
            5. best-effort side effects after commit

        Raises:
            TaskNotFoundError, NotAParticipantError, ChallengeEndedError,
            ChallengeNotActiveError, TaskNotScheduledError, InvalidSpecError,
            AlreadyCompletedTodayError
        """
        completion_in = completion_in or TaskCompletionCreate()
        challenge = self._get_challenge(db, challenge_id)
        task = self._get_task(db, challenge, task_id)
        participation = self._require_participation(db, challenge, requesting_user.id, for_update=True)

        now = self.clock()
        today = now.date()
        status = challenge_status(challenge.start_date, challenge.end_date, today)
        if status == ChallengeStatus.ended:
            raise ChallengeEndedError("Challenge has ended; completions are closed")
        if status == ChallengeStatus.upcoming:
            raise ChallengeNotActiveError()

        completed_on = today if completed_date is None else self._parse_date(completed_date, "completedDate")
        if completed_on > today:
            raise InvalidSpecError("completedDate cannot be in the future")
        if not challenge.start_date <= completed_on <= challenge.end_date:
            raise InvalidSpecError("completedDate must fall within the challenge dates")
        scheduled_on = self.task_date(challenge, task)
        if completed_on != scheduled_on:
            raise TaskNotScheduledError(f"Task is scheduled for {scheduled_on.isoformat()}")

        completion = TaskCompletion(
            task_id=task.id,
            user_id=requesting_user.id,
            completed_date=completed_on,
            actual_value=completion_in.actual_value,
            notes=completion_in.notes,
            time_spent_minutes=completion_in.time_spent_minutes,
            points=task.points,
            completed_at=now,
        )
        try:
            completion = crud_task_completion.create_with_progress(
                db,
                obj_in=completion,
                participation=participation,
                goal=challenge.goal,
                accumulate_points=challenge.accumulates_points,
                synced_at=now,
            )
        except DatabaseConflictError:
            logger.info(f"Duplicate completion of task {task_id} by {requesting_user.id} on {completed_on}")
            raise AlreadyCompletedTodayError()

        self.dispatcher.task_completed(task, completion)
        return completion

    @translate_store_errors
    def get_my_completions(
        self,
        db: Session,
        challenge_id: UUID,
        requesting_user: UserAuth,
        on_date: Optional[DayLike] = None,
    ) -> List[TaskCompletion]:
        challenge = self._get_challenge(db, challenge_id)
        resolved = None if on_date is None else self._parse_date(on_date, "date")
        return crud_task_completion.get_by_user_in_challenge(
            db, challenge_id=challenge.id, user_id=requesting_user.id, on_date=resolved
        )

    @translate_store_errors
    def activate_fasting(
        self, db: Session, challenge_id: UUID, fasting_type: str, requesting_user: UserAuth
    ) -> None:
        """Explicit fasting activation by a participant; collaborator errors propagate."""
        challenge = self._get_challenge(db, challenge_id)
        self._require_participation(db, challenge, requesting_user.id)
        self.dispatcher.activate_fasting(requesting_user.id, fasting_type)

    # =====================================================================
    # AGGREGATES
    # =====================================================================

    @translate_store_errors
    def get_leaderboard(
        self, db: Session, challenge_id: UUID, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        challenge = self._get_challenge(db, challenge_id)
        return self.aggregator.get_leaderboard(db, challenge=challenge, limit=limit)

    @translate_store_errors
    def get_task_engagement(
        self,
        db: Session,
        challenge_id: UUID,
        task_id: UUID,
        requesting_user: UserAuth,
        on_date: Optional[DayLike] = None,
    ) -> Dict[str, Any]:
        """Engagement of a task on a date, defaulting to the task's own day."""
        challenge = self._get_challenge(db, challenge_id)
        self._require_manage(challenge, requesting_user, "view task engagement")
        task = self._get_task(db, challenge, task_id)

        resolved = self.task_date(challenge, task) if on_date is None else self._parse_date(on_date, "date")
        return self.aggregator.get_task_engagement(db, task=task, on_date=resolved)

    @translate_store_errors
    def get_daily_task_engagement(
        self,
        db: Session,
        challenge_id: UUID,
        requesting_user: UserAuth,
        on_date: Optional[DayLike] = None,
    ) -> List[Dict[str, Any]]:
        challenge = self._get_challenge(db, challenge_id)
        self._require_manage(challenge, requesting_user, "view task engagement")

        resolved = self._today() if on_date is None else self._parse_date(on_date, "date")
        return self.aggregator.get_daily_task_engagement(db, challenge=challenge, on_date=resolved)

    @translate_store_errors
    def update_task_engagement_snapshot(
        self, db: Session, challenge_id: UUID, task_id: UUID, requesting_user: UserAuth
    ) -> Dict[str, Any]:
        """Admin refresh: recompute engagement for the task's day right now."""
        challenge = self._get_challenge(db, challenge_id)
        self._require_manage(challenge, requesting_user, "refresh task engagement")
        task = self._get_task(db, challenge, task_id)

        engagement = self.aggregator.get_task_engagement(
            db, task=task, on_date=self.task_date(challenge, task)
        )
        return self.aggregator.snapshot(engagement, computed_at=self.clock())

    @translate_store_errors
    def get_completion_details(
        self,
        db: Session,
        challenge_id: UUID,
        task_id: UUID,
        requesting_user: UserAuth,
        on_date: Optional[DayLike] = None,
    ) -> List[Dict[str, Any]]:
        challenge = self._get_challenge(db, challenge_id)
        self._require_manage(challenge, requesting_user, "inspect completions")
        task = self._get_task(db, challenge, task_id)

        resolved = None if on_date is None else self._parse_date(on_date, "date")
        return self.aggregator.get_completion_details(db, task=task, on_date=resolved)


# =====================================================================
# SINGLETON INSTANCE
# =====================================================================

challenge_engine = ChallengeEngine(
    identity=DirectoryIdentityProvider(settings.IDENTITY_FALLBACK_NAME),
    dispatcher=SideEffectDispatcher(build_fasting_client()),
)


def get_challenge_engine() -> ChallengeEngine:
    """Engine dependency, overridable in tests."""
    return challenge_engine
