"""Daily verification, the one write path for progress.

verify_today(challenge, user, evidence):
    1. Load challenge + user, resolve the user's local day.
    2. Already done today -> ALREADY_VERIFIED_TODAY (no provider call).
    3. Metric challenges: sample the provider over [local midnight, now).
    4. Evaluate evidence with the challenge's strategy.
    5. On success, in ONE transaction: re-check the day, append to the
       ledger, recompute the leaderboard entry.
    6. After commit, publish DailyCompletionRecorded (best effort).

The provider is never called while a transaction is open.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streakboard.config import Settings, settings as default_settings
from streakboard.models.challenge import Challenge
from streakboard.models.leaderboard import LeaderboardEntry
from streakboard.models.user import User
from streakboard.services.challenge_service import (
    ChallengeNotFound, InvalidChallenge, UserNotFound,
)
from streakboard.services.clock import (
    Clock, SystemClock, local_day_window, local_today, to_naive_utc,
)
from streakboard.services.events import (
    DailyCompletionRecorded, EventSink, LoggingEventSink, publish_quietly,
)
from streakboard.services.ledger_service import ProgressLedger
from streakboard.services.metric_provider import (
    MetricProvider, ProviderError, sample_with_timeout,
)
from streakboard.services.scoring_service import LeaderboardService, compute_streak
from streakboard.services.transactions import read_session, run_in_transaction
from streakboard.services.verification import (
    Evidence, InvalidChallengeConfiguration, MetricThreshold,
    VerificationResult, VerificationStatus, evaluate, method_for,
)

logger = logging.getLogger(__name__)


@dataclass
class DailyVerification:
    """What verify_today hands back to the caller."""
    status: VerificationStatus
    day: date
    reason: str = ''
    entry: LeaderboardEntry | None = None

    @property
    def success(self) -> bool:
        return self.status == VerificationStatus.VERIFIED

    @property
    def is_error(self) -> bool:
        return VerificationResult(self.status).is_error

    @property
    def retryable(self) -> bool:
        return self.status == VerificationStatus.PROVIDER_UNAVAILABLE


@dataclass
class ProgressSnapshot:
    challenge_id: int
    user_id: int
    days_completed: int
    duration_days: int
    current_streak: int
    longest_streak: int
    score: int
    completed_today: bool
    days: list[date] = field(default_factory=list)

    @property
    def completion_fraction(self) -> float:
        if self.duration_days <= 0:
            return 0.0
        return min(1.0, self.days_completed / self.duration_days)

    @property
    def is_completed(self) -> bool:
        return self.days_completed >= self.duration_days


class VerificationService:
    """Coordinates guard, strategy, ledger and leaderboard for one attempt."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metric_provider: MetricProvider,
        clock: Clock | None = None,
        events: EventSink | None = None,
        config: Settings = default_settings,
    ):
        self.session_factory = session_factory
        self.metric_provider = metric_provider
        self.clock = clock or SystemClock()
        self.events = events or LoggingEventSink()
        self.config = config

    async def verify_today(
        self,
        challenge_id: int,
        user_id: int,
        evidence: Evidence = None,
        timeout: float | None = None,
    ) -> DailyVerification:
        """Verify and record today's completion for the user.

        Expected outcomes (verified, already verified, goal not met) and
        recoverable ones (invalid evidence, provider unavailable) come back as
        a status. Missing rows raise ChallengeNotFound/UserNotFound; storage
        failures raise StorageError or ConcurrentModification.
        """
        async with read_session(self.session_factory, f'verify challenge={challenge_id}') as session:
            challenge = await session.get(Challenge, challenge_id)
            if challenge is None:
                raise ChallengeNotFound(f'Challenge {challenge_id} not found')
            user = await session.get(User, user_id)
            if user is None:
                raise UserNotFound(f'User {user_id} not found')

            tz_name = user.timezone or self.config.default_timezone
            today = local_today(self.clock, tz_name)
            if await ProgressLedger(session).has_completed_today(challenge_id, user_id, today):
                return DailyVerification(
                    VerificationStatus.ALREADY_VERIFIED_TODAY, today,
                    reason='Already verified today',
                )

        try:
            method = method_for(challenge)
        except InvalidChallengeConfiguration as e:
            raise InvalidChallenge(str(e))

        sample = None
        if isinstance(method, MetricThreshold):
            start, end = local_day_window(self.clock, tz_name)
            try:
                sample = await sample_with_timeout(
                    self.metric_provider, user_id, method.metric, start, end,
                    timeout=timeout or self.config.metric_provider_timeout,
                )
            except ProviderError as e:
                logger.warning(
                    'Metric sample failed for user %s challenge %s: %s',
                    user_id, challenge_id, e,
                )
                return DailyVerification(
                    VerificationStatus.PROVIDER_UNAVAILABLE, today, reason=str(e),
                )

        result = evaluate(method, evidence, sample)
        if not result.success:
            return DailyVerification(result.status, today, reason=result.reason)

        recorded_at = to_naive_utc(self.clock.now())

        async def work(session: AsyncSession) -> LeaderboardEntry | None:
            current = await session.get(Challenge, challenge_id)
            if current is None:
                raise ChallengeNotFound(f'Challenge {challenge_id} not found')
            recorded = await ProgressLedger(session).record_completion(
                challenge_id, user_id, today, recorded_at=recorded_at,
            )
            if recorded.already_recorded:
                return None
            return await LeaderboardService(session).recompute(current, user_id, recorded_at)

        entry = await run_in_transaction(
            self.session_factory, work,
            retries=self.config.verify_max_retries,
            label=f'verify challenge={challenge_id} user={user_id}',
        )
        if entry is None:
            return DailyVerification(
                VerificationStatus.ALREADY_VERIFIED_TODAY, today,
                reason='Already verified today',
            )

        logger.info(
            'Verified challenge %s for user %s on %s (streak %s, score %s)',
            challenge_id, user_id, today, entry.current_streak, entry.score,
        )
        await publish_quietly(self.events, DailyCompletionRecorded(
            challenge_id=challenge_id,
            user_id=user_id,
            day=today,
            current_streak=entry.current_streak,
            score=entry.score,
        ))
        return DailyVerification(
            VerificationStatus.VERIFIED, today, reason=result.reason, entry=entry,
        )

    async def get_progress(self, challenge_id: int, user_id: int) -> ProgressSnapshot:
        """Read-only view of one user's progress in a challenge."""
        async with read_session(self.session_factory, 'get_progress') as session:
            challenge = await session.get(Challenge, challenge_id)
            if challenge is None:
                raise ChallengeNotFound(f'Challenge {challenge_id} not found')
            user = await session.get(User, user_id)
            if user is None:
                raise UserNotFound(f'User {user_id} not found')

            days = await ProgressLedger(session).get_days(challenge_id, user_id)
            entry = await LeaderboardService(session).get_entry(challenge_id, user_id)

        current, longest = compute_streak(days)
        today = local_today(self.clock, user.timezone or self.config.default_timezone)
        return ProgressSnapshot(
            challenge_id=challenge_id,
            user_id=user_id,
            days_completed=len(days),
            duration_days=challenge.duration_days,
            current_streak=current,
            longest_streak=longest,
            score=entry.score if entry else 0,
            completed_today=today in days,
            days=days,
        )

    async def get_leaderboard(
        self, challenge_id: int, limit: int | None = None, offset: int = 0,
    ) -> list[LeaderboardEntry]:
        async with read_session(self.session_factory, 'get_leaderboard') as session:
            if await session.get(Challenge, challenge_id) is None:
                raise ChallengeNotFound(f'Challenge {challenge_id} not found')
            return await LeaderboardService(session).get_page(
                challenge_id, limit=limit or self.config.leaderboard_page_size, offset=offset,
            )
