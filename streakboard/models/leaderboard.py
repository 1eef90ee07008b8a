from datetime import datetime
from sqlalchemy import Integer, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from streakboard.db.database import Base


class LeaderboardEntry(Base):
    """Derived standing of one user in one challenge. Rebuilt from the ledger."""

    __tablename__ = 'leaderboard_entries'

    id: Mapped[int] = mapped_column(primary_key=True)
    challenge_id: Mapped[int] = mapped_column(
        ForeignKey('challenges.id', ondelete='CASCADE'),
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey('users.id', ondelete='CASCADE'),
    )

    days_completed: Mapped[int] = mapped_column(Integer, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    score: Mapped[int] = mapped_column(Integer, default=0)

    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('challenge_id', 'user_id', name='unique_leaderboard_entry'),
        Index('ix_leaderboard_challenge_score', 'challenge_id', 'score'),
    )
