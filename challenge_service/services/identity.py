# services/identity.py
"""
Identity collaborator: resolves display fields for user ids.

The engine never fails a read because a name could not be resolved; any
unknown user or store failure falls back to a generic label.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, NamedTuple, Optional
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from challenge_service.core.config import settings
from challenge_service.crud.user_auth import crud_user_auth

logger = logging.getLogger(__name__)


class UserIdentity(NamedTuple):
    user_id: UUID
    display_name: str
    email: Optional[str] = None
    photo_url: Optional[str] = None


class IdentityProvider(ABC):
    """Interface for resolving user display fields."""

    def __init__(self, fallback_name: str = settings.IDENTITY_FALLBACK_NAME):
        self.fallback_name = fallback_name

    def fallback(self, user_id: UUID) -> UserIdentity:
        return UserIdentity(user_id=user_id, display_name=self.fallback_name)

    @abstractmethod
    def resolve_many(self, db: Session, user_ids: Iterable[UUID]) -> Dict[UUID, UserIdentity]:
        """Identity for every id; unknown ids map to ``fallback``."""


class DirectoryIdentityProvider(IdentityProvider):
    """Reads the ``user_auth`` directory shared with the identity service."""

    def resolve_many(self, db: Session, user_ids: Iterable[UUID]) -> Dict[UUID, UserIdentity]:
        user_ids = list(user_ids)
        resolved = {user_id: self.fallback(user_id) for user_id in user_ids}

        try:
            users = crud_user_auth.get_many(db, ids=user_ids)
        except SQLAlchemyError as exc:
            logger.warning(f"Identity lookup failed, using fallback names: {exc}")
            db.rollback()
            return resolved

        for user in users:
            display_name = user.username or (user.email.split("@")[0] if user.email else None)
            resolved[user.id] = UserIdentity(
                user_id=user.id,
                display_name=display_name or self.fallback_name,
                email=user.email,
                photo_url=user.photo_url,
            )
        return resolved
