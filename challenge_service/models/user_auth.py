# models/user_auth.py
# Directory of users owned by the identity service. The engine only reads it.

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, DateTime, Uuid, Enum as SqlEnum
)
import enum
from challenge_service.core.config import Base

class UserRole(enum.Enum):
    user = "user"
    admin = "admin"

class Status(enum.Enum):
    active = "active"
    suspended = "suspended"
    deactivated = "deactivated"

class UserAuth(Base):
    __tablename__ = "user_auth"

    # ---- Base fields ----
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, index=True)
    username = Column(String(50), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    photo_url = Column(String(512), nullable=True)
    role = Column(SqlEnum(UserRole), default=UserRole.user)

    # ---- Account status ----
    status = Column(SqlEnum(Status), default=Status.active)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
