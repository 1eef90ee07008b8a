"""Persistent recent-activity feed.

ActivityLog is an EventSink: every completion event becomes an ActivityItem
row, so a client that reconnects can load what it missed.
"""
import logging
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streakboard.models.activity import ActivityItem
from streakboard.models.challenge import Challenge
from streakboard.services.clock import Clock, SystemClock, to_naive_utc
from streakboard.services.events import (
    ChallengeCompleted, DailyCompletionRecorded, DomainEvent,
)
from streakboard.services.transactions import read_session, run_in_transaction

logger = logging.getLogger(__name__)

RECENT_LIMIT = 20


def describe(event: DomainEvent, title: str | None = None) -> str:
    """Human-readable feed line for an event."""
    if isinstance(event, ChallengeCompleted):
        return f'Finished {event.title} ({event.days_completed} days)'
    label = title or f'challenge {event.challenge_id}'
    if event.current_streak > 1:
        return f'Checked in on {label}, {event.current_streak} days in a row'
    return f'Checked in on {label}'


class ActivityLog:
    """Stores and serves the recent-activity feed."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()

    async def publish(self, event: DomainEvent) -> None:
        created_at = to_naive_utc(self.clock.now())

        async def work(session: AsyncSession) -> ActivityItem:
            title = None
            if isinstance(event, DailyCompletionRecorded):
                challenge = await session.get(Challenge, event.challenge_id)
                title = challenge.title if challenge else None
            item = ActivityItem(
                user_id=event.user_id,
                challenge_id=event.challenge_id,
                kind=event.name,
                description=describe(event, title),
                created_at=created_at,
            )
            session.add(item)
            await session.flush()
            return item

        item = await run_in_transaction(self.session_factory, work, label='record activity')
        logger.debug('Activity %s for user %s', item.kind, item.user_id)

    async def recent(
        self, limit: int = RECENT_LIMIT, user_id: int | None = None,
    ) -> list[ActivityItem]:
        """Newest first, optionally for one user only."""
        query = select(ActivityItem).order_by(desc(ActivityItem.created_at), desc(ActivityItem.id))
        if user_id is not None:
            query = query.where(ActivityItem.user_id == user_id)
        async with read_session(self.session_factory, 'recent activity') as session:
            result = await session.execute(query.limit(limit))
            return list(result.scalars().all())
