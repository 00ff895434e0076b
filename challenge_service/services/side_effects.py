# services/side_effects.py
import logging
from typing import Optional
from uuid import UUID

from challenge_service.core.exceptions import UnavailableError
from challenge_service.models.daily_task import DailyTask, TaskType
from challenge_service.models.task_completion import TaskCompletion
from challenge_service.services.fasting_client import FastingSessionClient

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """Fires collaborator actions triggered by engine operations."""

    def __init__(self, fasting_client: Optional[FastingSessionClient] = None):
        self.fasting_client = fasting_client

    def activate_fasting(self, user_id: UUID, fasting_type: str) -> None:
        """Explicit activation; failures propagate to the caller."""
        if self.fasting_client is None:
            raise UnavailableError("Fasting service is not configured")
        self.fasting_client.activate(user_id, fasting_type)

    def task_completed(self, task: DailyTask, completion: TaskCompletion) -> bool:
        """
        Best-effort reaction to a recorded completion.

        Never raises: the completion is already committed.

        Returns:
            True if a side effect was dispatched successfully
        """
        if task.task_type != TaskType.fasting:
            return False

        if self.fasting_client is None:
            logger.info(f"Fasting service not configured, skipping activation for task {task.id}")
            return False

        try:
            self.fasting_client.activate(completion.user_id, task.fasting_type)
        except Exception as exc:
            logger.warning(
                f"Fasting activation failed for user {completion.user_id} "
                f"(task {task.id}): {exc}",
                exc_info=exc,
            )
            return False
        return True
