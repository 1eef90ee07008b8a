from datetime import datetime
from sqlalchemy import String, Integer, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from streakboard.db.database import Base


class User(Base):
    """Participant account. Only what the progress engine needs lives here."""

    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)

    # IANA zone name; decides which calendar day a completion lands on
    timezone: Mapped[str] = mapped_column(String(64), default='UTC')

    # Entitlement tier: free users are capped on concurrent challenges
    is_pro: Mapped[bool] = mapped_column(Boolean, default=False)

    active_challenge_count: Mapped[int] = mapped_column(Integer, default=0)
    completed_challenge_count: Mapped[int] = mapped_column(Integer, default=0)

    # Optimistic lock; bumped on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {'version_id_col': version}
