# crud/user_auth.py
from typing import Optional, List, Iterable
from uuid import UUID
from sqlalchemy.orm import Session

from challenge_service.models.user_auth import UserAuth


class UserAuthCRUD:
    """Read access to the identity directory."""

    def get(self, db: Session, id: UUID) -> Optional[UserAuth]:
        return db.query(UserAuth).filter(UserAuth.id == id).first()

    def get_many(self, db: Session, *, ids: Iterable[UUID]) -> List[UserAuth]:
        ids = list(set(ids))
        if not ids:
            return []
        return db.query(UserAuth).filter(UserAuth.id.in_(ids)).all()


# Create singleton instance
crud_user_auth = UserAuthCRUD()
