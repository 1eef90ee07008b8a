from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from streakboard.db.database import Base


class ActivityItem(Base):
    """One line of the recent-activity feed.

    Written after the fact from domain events; the challenge may be gone by
    the time it is read, so the title is copied.
    """

    __tablename__ = 'activity_items'

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey('users.id', ondelete='CASCADE'),
    )
    challenge_id: Mapped[int] = mapped_column(Integer)
    kind: Mapped[str] = mapped_column(String(30))
    description: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_activity_created', 'created_at'),
        Index('ix_activity_user', 'user_id', 'created_at'),
    )
