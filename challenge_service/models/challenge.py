# models/challenge.py

import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Text, Date, DateTime, Float, Integer, Boolean, Uuid,
    ForeignKey, UniqueConstraint, Enum as SqlEnum
)
from sqlalchemy.orm import relationship
from challenge_service.core.config import Base


class ChallengeType(str, enum.Enum):
    water = "water"
    meals = "meals"
    streak = "streak"
    steps = "steps"
    workout = "workout"
    meditation = "meditation"
    custom = "custom"


# Challenge types whose progress is a point total rather than a day count
POINT_ACCUMULATION_TYPES = frozenset({ChallengeType.steps, ChallengeType.custom})


class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(SqlEnum(ChallengeType), nullable=False, default=ChallengeType.custom)
    goal = Column(Float, nullable=False, default=0)
    duration = Column(Integer, nullable=False)

    # end_date = start_date + duration days, written once at creation
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)

    creator_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    image_url = Column(String(512), nullable=True)

    # Cache, recomputed from participation rows on every join
    participant_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    participations = relationship("Participation", back_populates="challenge", cascade="all, delete-orphan")
    tasks = relationship("DailyTask", back_populates="challenge", cascade="all, delete-orphan")

    @property
    def accumulates_points(self) -> bool:
        return self.type in POINT_ACCUMULATION_TYPES


class Participation(Base):
    __tablename__ = "participations"
    __table_args__ = (
        UniqueConstraint("challenge_id", "user_id", name="uq_participation_challenge_user"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    challenge_id = Column(Uuid(as_uuid=True), ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    joined_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    progress = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)
    last_synced_at = Column(DateTime, nullable=True)

    challenge = relationship("Challenge", back_populates="participations")
