from dataclasses import dataclass
from datetime import date, datetime
from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.models.ledger import ProgressEntry


@dataclass
class RecordResult:
    """Outcome of recording a completion day."""
    already_recorded: bool
    entry: ProgressEntry | None = None


class ProgressLedger:
    """Per-(challenge, user) log of completed calendar days.

    Every completion goes through here. At most one row per day; the unique
    constraint on (challenge_id, user_id, day) backs the check below when two
    writers race, and the caller's transaction retry resolves the loser.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_completion(
        self,
        challenge_id: int,
        user_id: int,
        day: date,
        recorded_at: datetime | None = None,
    ) -> RecordResult:
        """Append `day` for the user. Idempotent: a repeat is a no-op."""
        if await self.has_completed_on(challenge_id, user_id, day):
            return RecordResult(already_recorded=True)

        entry = ProgressEntry(
            challenge_id=challenge_id,
            user_id=user_id,
            day=day,
        )
        if recorded_at is not None:
            entry.recorded_at = recorded_at
        self.db.add(entry)
        await self.db.flush()
        return RecordResult(already_recorded=False, entry=entry)

    async def has_completed_on(self, challenge_id: int, user_id: int, day: date) -> bool:
        result = await self.db.execute(
            select(ProgressEntry.id)
            .where(ProgressEntry.challenge_id == challenge_id)
            .where(ProgressEntry.user_id == user_id)
            .where(ProgressEntry.day == day)
        )
        return result.first() is not None

    async def has_completed_today(
        self, challenge_id: int, user_id: int, today: date,
    ) -> bool:
        """`today` is the user's local calendar day, supplied by the clock."""
        return await self.has_completed_on(challenge_id, user_id, today)

    async def get_days(self, challenge_id: int, user_id: int) -> list[date]:
        """All completed days for the user, oldest first."""
        result = await self.db.execute(
            select(ProgressEntry.day)
            .where(ProgressEntry.challenge_id == challenge_id)
            .where(ProgressEntry.user_id == user_id)
            .order_by(ProgressEntry.day)
        )
        return list(result.scalars().all())

    async def count_days(self, challenge_id: int, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(ProgressEntry.id))
            .where(ProgressEntry.challenge_id == challenge_id)
            .where(ProgressEntry.user_id == user_id)
        )
        return result.scalar() or 0

    async def counts_by_user(self, challenge_id: int) -> dict[int, int]:
        """user_id -> days completed, for every user with progress."""
        result = await self.db.execute(
            select(ProgressEntry.user_id, func.count(ProgressEntry.id))
            .where(ProgressEntry.challenge_id == challenge_id)
            .group_by(ProgressEntry.user_id)
        )
        return {user_id: count for user_id, count in result.all()}

    async def clear_challenge(self, challenge_id: int) -> None:
        """Drop all progress for a challenge. Only the expiry sweep calls this."""
        await self.db.execute(
            delete(ProgressEntry).where(ProgressEntry.challenge_id == challenge_id)
        )
