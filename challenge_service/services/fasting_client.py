# services/fasting_client.py
import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from uuid import UUID

import httpx

from challenge_service.core.config import settings
from challenge_service.core.exceptions import UnavailableError

logger = logging.getLogger(__name__)


class FastingSessionClient(ABC):
    """Fasting-session collaborator: starts a fasting timer for a user."""

    @abstractmethod
    def activate(self, user_id: UUID, fasting_type: str) -> Dict[str, Any]:
        """Start a session; raise UnavailableError when the service cannot be reached."""


class HttpFastingSessionClient(FastingSessionClient):
    """Calls the fasting service over HTTP."""

    def __init__(self, base_url: str, timeout: float = 3.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def activate(self, user_id: UUID, fasting_type: str) -> Dict[str, Any]:
        """
        Activate a fasting session.

        Args:
            user_id: User to start the session for
            fasting_type: Fasting protocol, e.g. "16:8"

        Returns:
            Acknowledgement payload from the service

        Raises:
            UnavailableError: On transport errors or a non-2xx response
        """
        url = f"{self.base_url}/sessions/activate"
        try:
            response = httpx.post(
                url,
                json={"userId": str(user_id), "fastingType": fasting_type},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UnavailableError(f"Fasting service error: {exc}") from exc

        logger.debug(f"Fasting session activated for {user_id} ({fasting_type})")
        return {"acknowledged": True, "status_code": response.status_code}


def build_fasting_client() -> Optional[FastingSessionClient]:
    if not settings.FASTING_SERVICE_URL:
        return None
    return HttpFastingSessionClient(
        settings.FASTING_SERVICE_URL,
        timeout=settings.FASTING_SERVICE_TIMEOUT_SECONDS,
    )
