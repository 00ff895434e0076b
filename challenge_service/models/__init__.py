# challenge_service/models/__init__.py

from challenge_service.core.config import Base

# Import all models here so metadata.create_all and app-wide imports work
from .user_auth import UserAuth, UserRole, Status
from .challenge import Challenge, ChallengeType, Participation, POINT_ACCUMULATION_TYPES
from .daily_task import DailyTask, TaskType
from .task_completion import TaskCompletion

__all__ = [
    "Base",
    "UserAuth",
    "UserRole",
    "Status",
    "Challenge",
    "ChallengeType",
    "Participation",
    "POINT_ACCUMULATION_TYPES",
    "DailyTask",
    "TaskType",
    "TaskCompletion",
]
