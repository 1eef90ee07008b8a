from datetime import datetime, timedelta
from enum import Enum
from sqlalchemy import (
    String, Integer, Float, Boolean, ForeignKey, DateTime, Text, Index, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from streakboard.db.database import Base


class ChallengeType(str, Enum):
    """Category a challenge belongs to."""
    FITNESS = 'fitness'
    EDUCATION = 'education'
    LIFESTYLE = 'lifestyle'
    MISCELLANEOUS = 'miscellaneous'


class Difficulty(str, Enum):
    """Difficulty drives the leaderboard score multiplier."""
    EASY = 'easy'
    MEDIUM = 'medium'
    HARD = 'hard'


class VerificationKind(str, Enum):
    """How a participant proves a day's completion."""
    METRIC_THRESHOLD = 'metric_threshold'
    MANUAL_NUMERIC = 'manual_numeric'
    MANUAL_TEXT = 'manual_text'
    CHECKBOX = 'checkbox'
    TIMER_DURATION = 'timer_duration'
    LOCATION_CHECK = 'location_check'
    PRESENCE = 'presence'


class Metric(str, Enum):
    """Device health metrics the metric provider can sum over a window."""
    STEPS = 'steps'
    HEART_RATE = 'heart_rate'
    ACTIVE_ENERGY = 'active_energy'
    DISTANCE = 'distance'
    WORKOUT_TIME = 'workout_time'
    SLEEP = 'sleep'
    MINDFUL_MINUTES = 'mindful_minutes'
    WATER_INTAKE = 'water_intake'


class PresenceKind(str, Enum):
    """What a presence-verified challenge expects to be attached."""
    PHOTO = 'photo'
    FILE = 'file'
    SOCIAL_POST = 'social_post'


class Challenge(Base):
    """Time-boxed challenge users join and verify daily."""

    __tablename__ = 'challenges'

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(120))
    description: Mapped[str] = mapped_column(Text, default='')
    creator_id: Mapped[int | None] = mapped_column(
        ForeignKey('users.id', ondelete='SET NULL'), default=None,
    )

    challenge_type: Mapped[str] = mapped_column(String(20))
    difficulty: Mapped[str] = mapped_column(String(10), default=Difficulty.MEDIUM.value)

    # Verification method (tagged variant flattened into columns)
    verification_kind: Mapped[str] = mapped_column(String(20))
    metric: Mapped[str | None] = mapped_column(String(30), default=None)
    goal: Mapped[float | None] = mapped_column(Float, default=None)
    target_latitude: Mapped[float | None] = mapped_column(Float, default=None)
    target_longitude: Mapped[float | None] = mapped_column(Float, default=None)
    radius_meters: Mapped[float | None] = mapped_column(Float, default=None)
    presence_kind: Mapped[str | None] = mapped_column(String(20), default=None)

    # Capacity; count <= max is enforced at join time only
    max_participants: Mapped[int] = mapped_column(Integer)
    participant_count: Mapped[int] = mapped_column(Integer, default=0)

    duration_days: Mapped[int] = mapped_column(Integer)
    start_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    is_official: Mapped[bool] = mapped_column(Boolean, default=False)

    # Optimistic lock; join/leave/sweep all bump it
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {'version_id_col': version}

    __table_args__ = (
        Index('ix_challenge_official', 'is_official'),
        Index('ix_challenge_creator', 'creator_id'),
    )

    @property
    def ends_at(self) -> datetime:
        return self.start_date + timedelta(days=self.duration_days)

    def is_expired(self, now: datetime) -> bool:
        """True once `now` (naive UTC) is past start_date + duration_days."""
        return now > self.ends_at


class ChallengeParticipant(Base):
    """Membership of a user in a challenge."""

    __tablename__ = 'challenge_participants'

    id: Mapped[int] = mapped_column(primary_key=True)
    challenge_id: Mapped[int] = mapped_column(
        ForeignKey('challenges.id', ondelete='CASCADE'), index=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey('users.id', ondelete='CASCADE'), index=True,
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('challenge_id', 'user_id', name='unique_participant'),
    )
