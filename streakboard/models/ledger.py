from datetime import datetime, date
from sqlalchemy import Date, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from streakboard.db.database import Base


class ProgressEntry(Base):
    """Progress ledger: one row per calendar day a user completed a challenge.

    Append-only. Only the expiry sweep ever deletes rows.
    """

    __tablename__ = 'progress_entries'

    id: Mapped[int] = mapped_column(primary_key=True)
    challenge_id: Mapped[int] = mapped_column(
        ForeignKey('challenges.id', ondelete='CASCADE'),
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey('users.id', ondelete='CASCADE'),
    )

    # Calendar day in the user's local zone at verification time
    day: Mapped[date] = mapped_column(Date)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('challenge_id', 'user_id', 'day', name='unique_progress_day'),
        Index('ix_progress_challenge_user', 'challenge_id', 'user_id'),
    )
