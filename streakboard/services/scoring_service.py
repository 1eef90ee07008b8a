"""Streak and leaderboard score, derived from the progress ledger.

Score formula:
    base  = days_completed × 10 + current_streak × 5 + longest_streak × 2
    score = floor(base × multiplier(difficulty))
    multiplier: easy 1.0, medium 1.2, hard 1.5, anything else 1.0

Streaks are always recomputed from the full history rather than updated
incrementally; challenge durations are bounded so O(n) per call is fine.
"""
from datetime import date, datetime, timedelta
from typing import Iterable
from sqlalchemy import select, desc, delete
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.models.challenge import Challenge, Difficulty
from streakboard.models.leaderboard import LeaderboardEntry
from streakboard.services.ledger_service import ProgressLedger

POINTS_PER_DAY = 10
POINTS_PER_CURRENT_STREAK_DAY = 5
POINTS_PER_LONGEST_STREAK_DAY = 2

# Multipliers in tenths so the floor is exact integer math (1.2 isn't exact in binary)
DIFFICULTY_MULTIPLIER_TENTHS = {
    Difficulty.EASY: 10,
    Difficulty.MEDIUM: 12,
    Difficulty.HARD: 15,
}
DEFAULT_MULTIPLIER_TENTHS = 10


def compute_streak(days: Iterable[date]) -> tuple[int, int]:
    """Return (current, longest) for a set of completion days.

    current: consecutive days ending at the most recent completion.
    longest: longest consecutive run anywhere in the history.
    """
    ordered = sorted(set(days), reverse=True)
    if not ordered:
        return 0, 0

    current = 0
    longest = 0
    run = 0
    previous: date | None = None
    in_current = True
    for day in ordered:
        if previous is not None and previous - day == timedelta(days=1):
            run += 1
        else:
            if previous is not None:
                in_current = False
            run = 1
        if in_current:
            current = run
        longest = max(longest, run)
        previous = day

    return current, longest


def difficulty_multiplier_tenths(difficulty: str | Difficulty | None) -> int:
    if difficulty is None:
        return DEFAULT_MULTIPLIER_TENTHS
    try:
        key = Difficulty(str(getattr(difficulty, 'value', difficulty)).lower())
    except ValueError:
        return DEFAULT_MULTIPLIER_TENTHS
    return DIFFICULTY_MULTIPLIER_TENTHS.get(key, DEFAULT_MULTIPLIER_TENTHS)


def compute_score(
    days_completed: int,
    current_streak: int,
    longest_streak: int,
    difficulty: str | Difficulty | None,
) -> int:
    """Leaderboard score (see module docstring)."""
    base = (
        days_completed * POINTS_PER_DAY
        + current_streak * POINTS_PER_CURRENT_STREAK_DAY
        + longest_streak * POINTS_PER_LONGEST_STREAK_DAY
    )
    return base * difficulty_multiplier_tenths(difficulty) // 10


class LeaderboardService:
    """Writes and reads derived leaderboard entries."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = ProgressLedger(db)

    async def recompute(
        self, challenge: Challenge, user_id: int, now: datetime,
    ) -> LeaderboardEntry:
        """Rebuild the user's entry from their full ledger history."""
        days = await self.ledger.get_days(challenge.id, user_id)
        current, longest = compute_streak(days)

        entry = await self.get_entry(challenge.id, user_id)
        if entry is None:
            entry = LeaderboardEntry(challenge_id=challenge.id, user_id=user_id)
            self.db.add(entry)

        entry.days_completed = len(days)
        entry.current_streak = current
        entry.longest_streak = longest
        entry.score = compute_score(len(days), current, longest, challenge.difficulty)
        entry.last_updated = now
        await self.db.flush()
        return entry

    async def get_entry(self, challenge_id: int, user_id: int) -> LeaderboardEntry | None:
        result = await self.db.execute(
            select(LeaderboardEntry)
            .where(LeaderboardEntry.challenge_id == challenge_id)
            .where(LeaderboardEntry.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_page(
        self, challenge_id: int, limit: int = 20, offset: int = 0,
    ) -> list[LeaderboardEntry]:
        """Entries ranked by score, best first."""
        result = await self.db.execute(
            select(LeaderboardEntry)
            .where(LeaderboardEntry.challenge_id == challenge_id)
            .order_by(
                desc(LeaderboardEntry.score),
                desc(LeaderboardEntry.longest_streak),
                LeaderboardEntry.user_id,
            )
            .limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def clear_challenge(self, challenge_id: int) -> None:
        await self.db.execute(
            delete(LeaderboardEntry).where(LeaderboardEntry.challenge_id == challenge_id)
        )
