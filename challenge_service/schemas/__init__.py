# challenge_service/schemas/__init__.py

from .common import CamelModel, SuccessResponse
from .daily_task import (
    DailyTaskDetails,
    DailyTaskCreate,
    DailyTaskUpdate,
    DailyTaskRead,
)
from .challenge import (
    ChallengeListFilter,
    ChallengeCreate,
    ChallengeUpdate,
    ParticipationRead,
    ChallengeRead,
    MyProgressRead,
)
from .task_completion import (
    TaskCompletionCreate,
    TaskCompletionRead,
    CompletionDetailRead,
    ActivateFastingRequest,
)
from .progress import (
    TaskEngagementRead,
    TaskEngagementSnapshot,
    DailyTaskEngagementRead,
    LeaderboardEntryRead,
)


__all__ = [
    "CamelModel", "SuccessResponse",

    # Tasks
    "DailyTaskDetails", "DailyTaskCreate", "DailyTaskUpdate", "DailyTaskRead",

    # Challenges
    "ChallengeListFilter", "ChallengeCreate", "ChallengeUpdate",
    "ParticipationRead", "ChallengeRead", "MyProgressRead",

    # Completions
    "TaskCompletionCreate", "TaskCompletionRead", "CompletionDetailRead",
    "ActivateFastingRequest",

    # Progress
    "TaskEngagementRead", "TaskEngagementSnapshot",
    "DailyTaskEngagementRead", "LeaderboardEntryRead",
]
