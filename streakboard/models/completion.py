from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from streakboard.db.database import Base


class ChallengeCompletion(Base):
    """Profile credit for finishing a community challenge.

    The challenge row itself is deleted by the sweep, so the title is copied.
    """

    __tablename__ = 'challenge_completions'

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey('users.id', ondelete='CASCADE'), index=True,
    )
    challenge_id: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(120))
    days_completed: Mapped[int] = mapped_column(Integer)
    completed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'challenge_id', name='unique_completion'),
    )
