"""Challenge lifecycle: join/leave under capacity and entitlement limits,
plus creation, creator edits and the periodic expiry sweep.

Join and leave are compare-and-swap updates: the challenge and user rows
carry optimistic version counters, so two racing joins for the last seat
cannot both commit. The loser is retried and then sees the challenge full.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from sqlalchemy import select, desc, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streakboard.config import Settings, settings as default_settings
from streakboard.models.challenge import (
    Challenge, ChallengeParticipant, ChallengeType, Difficulty, Metric,
    PresenceKind, VerificationKind,
)
from streakboard.models.completion import ChallengeCompletion
from streakboard.models.user import User
from streakboard.services.clock import Clock, SystemClock, to_naive_utc
from streakboard.services.events import (
    ChallengeCompleted, EventSink, LoggingEventSink, publish_quietly,
)
from streakboard.services.goal_inference import infer_goal
from streakboard.services.ledger_service import ProgressLedger
from streakboard.services.scoring_service import LeaderboardService
from streakboard.services.transactions import (
    ConcurrentModification, read_session, run_in_transaction,
)
from streakboard.services.verification import InvalidChallengeConfiguration, method_for

logger = logging.getLogger(__name__)


class ChallengeError(Exception):
    """Raised for challenge business logic errors."""
    pass


class ChallengeNotFound(ChallengeError):
    pass


class UserNotFound(ChallengeError):
    pass


class CapacityExceeded(ChallengeError):
    """Challenge already holds max_participants."""
    pass


class EntitlementExceeded(ChallengeError):
    """Free-tier user already holds the maximum number of challenges."""
    pass


class InvalidChallenge(ChallengeError):
    pass


class NotChallengeCreator(ChallengeError):
    """Only the creator may edit or delete a challenge."""
    pass


@dataclass
class JoinResult:
    joined: bool
    already_member: bool
    participant_count: int


@dataclass
class SweepSummary:
    reset: int = 0
    deleted: int = 0
    credited: int = 0
    skipped: int = 0
    challenge_ids: list[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            'reset': self.reset,
            'deleted': self.deleted,
            'credited': self.credited,
            'skipped': self.skipped,
        }


@dataclass
class _SweepOutcome:
    action: str
    events: list[ChallengeCompleted] = field(default_factory=list)


def _enum_value(enum_cls, value, label: str) -> str:
    try:
        return enum_cls(getattr(value, 'value', value)).value
    except ValueError:
        raise InvalidChallenge(f'Invalid {label}: {value}')


class ChallengeService:
    """Handles the challenge lifecycle."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
        events: EventSink | None = None,
        config: Settings = default_settings,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.events = events or LoggingEventSink()
        self.config = config

    def _transact(self, work, label: str):
        return run_in_transaction(
            self.session_factory, work,
            retries=self.config.verify_max_retries, label=label,
        )

    def _read(self, label: str):
        return read_session(self.session_factory, label)

    # ── Creation ──────────────────────────────────────────────────────────────

    async def create_challenge(
        self,
        title: str,
        challenge_type: str | ChallengeType,
        verification_kind: str | VerificationKind,
        max_participants: int,
        duration_days: int,
        description: str = '',
        difficulty: str | Difficulty = Difficulty.MEDIUM,
        creator_id: int | None = None,
        is_official: bool = False,
        metric: str | Metric | None = None,
        goal: float | None = None,
        target_latitude: float | None = None,
        target_longitude: float | None = None,
        radius_meters: float | None = None,
        presence_kind: str | PresenceKind | None = None,
        start_date: datetime | None = None,
    ) -> Challenge:
        """Validate and store a new challenge.

        Fitness metric challenges without an explicit goal get one inferred
        from the title/description ("10,000 steps", "5 km", "500 calories").
        """
        if max_participants < 1:
            raise InvalidChallenge('max_participants must be at least 1')
        if duration_days < 1:
            raise InvalidChallenge('duration_days must be at least 1')

        ctype = _enum_value(ChallengeType, challenge_type, 'challenge type')
        kind = _enum_value(VerificationKind, verification_kind, 'verification method')
        level = _enum_value(Difficulty, difficulty, 'difficulty')
        metric_value = _enum_value(Metric, metric, 'metric') if metric is not None else None
        presence_value = (
            _enum_value(PresenceKind, presence_kind, 'presence kind')
            if presence_kind is not None else None
        )

        if kind == VerificationKind.METRIC_THRESHOLD.value and (goal is None or metric_value is None):
            inferred = infer_goal(title, description, ChallengeType(ctype))
            if inferred is not None:
                inferred_metric, inferred_goal = inferred
                metric_value = metric_value or inferred_metric.value
                if goal is None:
                    goal = inferred_goal
        if kind == VerificationKind.LOCATION_CHECK.value and radius_meters is None:
            radius_meters = self.config.location_radius_meters

        now = to_naive_utc(self.clock.now())
        challenge = Challenge(
            title=title,
            description=description,
            creator_id=creator_id,
            challenge_type=ctype,
            difficulty=level,
            verification_kind=kind,
            metric=metric_value,
            goal=goal,
            target_latitude=target_latitude,
            target_longitude=target_longitude,
            radius_meters=radius_meters,
            presence_kind=presence_value,
            max_participants=max_participants,
            participant_count=0,
            duration_days=duration_days,
            start_date=to_naive_utc(start_date) if start_date else now,
            is_official=is_official,
            created_at=now,
        )
        try:
            method_for(challenge)
        except InvalidChallengeConfiguration as e:
            raise InvalidChallenge(str(e))

        async def work(session: AsyncSession) -> Challenge:
            if creator_id is not None and await session.get(User, creator_id) is None:
                raise UserNotFound(f'User {creator_id} not found')
            session.add(challenge)
            await session.flush()
            return challenge

        created = await self._transact(work, 'create_challenge')
        logger.info('Created challenge %s (%s, %s)', created.id, ctype, kind)
        return created

    # ── Membership ────────────────────────────────────────────────────────────

    async def join(self, challenge_id: int, user_id: int) -> JoinResult:
        """Add the user to the challenge.

        Already joined is a no-op success. Raises CapacityExceeded when the
        challenge is full and EntitlementExceeded when a free-tier user is at
        the concurrent-challenge limit.
        """
        now = to_naive_utc(self.clock.now())

        async def work(session: AsyncSession) -> JoinResult:
            challenge, user = await self._load_pair(session, challenge_id, user_id)

            if await self._membership(session, challenge_id, user_id) is not None:
                return JoinResult(
                    joined=False, already_member=True,
                    participant_count=challenge.participant_count,
                )

            if challenge.participant_count >= challenge.max_participants:
                raise CapacityExceeded(
                    f'Challenge {challenge_id} is full ({challenge.max_participants} participants)'
                )

            limit = self.config.free_tier_challenge_limit
            if not user.is_pro and user.active_challenge_count >= limit:
                raise EntitlementExceeded(
                    f'Free tier is limited to {limit} active challenges'
                )

            session.add(ChallengeParticipant(
                challenge_id=challenge_id, user_id=user_id, joined_at=now,
            ))
            challenge.participant_count += 1
            user.active_challenge_count += 1
            await session.flush()
            return JoinResult(
                joined=True, already_member=False,
                participant_count=challenge.participant_count,
            )

        result = await self._transact(work, f'join challenge={challenge_id} user={user_id}')
        if result.joined:
            logger.info('User %s joined challenge %s', user_id, challenge_id)
        return result

    async def leave(self, challenge_id: int, user_id: int) -> bool:
        """Remove the user. Returns False (no-op) when they weren't a member."""

        async def work(session: AsyncSession) -> bool:
            challenge, user = await self._load_pair(session, challenge_id, user_id)
            membership = await self._membership(session, challenge_id, user_id)
            if membership is None:
                return False

            await session.delete(membership)
            challenge.participant_count = max(0, challenge.participant_count - 1)
            user.active_challenge_count = max(0, user.active_challenge_count - 1)
            await session.flush()
            return True

        left = await self._transact(work, f'leave challenge={challenge_id} user={user_id}')
        if left:
            logger.info('User %s left challenge %s', user_id, challenge_id)
        return left

    # ── Expiry sweep ──────────────────────────────────────────────────────────

    async def sweep_expired(self, now: datetime | None = None) -> SweepSummary:
        """Reset expired official challenges, close out expired community ones.

        Each challenge is handled in its own transaction: it is either fully
        reset/deleted or left untouched. A challenge that keeps conflicting is
        skipped and picked up by the next sweep.
        """
        moment = to_naive_utc(now or self.clock.now())
        summary = SweepSummary()

        async with self._read('sweep candidates') as session:
            result = await session.execute(
                select(Challenge.id, Challenge.start_date, Challenge.duration_days)
                .where(Challenge.start_date < moment)
                .order_by(Challenge.id)
            )
            candidates = [
                challenge_id
                for challenge_id, start_date, duration_days in result.all()
                if moment > start_date + timedelta(days=duration_days)
            ]

        for challenge_id in candidates:
            try:
                outcome = await self._transact(
                    lambda session, cid=challenge_id: self._sweep_one(session, cid, moment),
                    f'sweep challenge={challenge_id}',
                )
            except ConcurrentModification:
                logger.warning('Sweep skipped challenge %s after repeated conflicts', challenge_id)
                summary.skipped += 1
                continue

            if outcome is None:
                continue
            summary.challenge_ids.append(challenge_id)
            if outcome.action == 'reset':
                summary.reset += 1
            else:
                summary.deleted += 1
            summary.credited += len(outcome.events)
            for event in outcome.events:
                await publish_quietly(self.events, event)

        logger.info('Sweep finished: %s', summary.as_dict())
        return summary

    async def _sweep_one(
        self, session: AsyncSession, challenge_id: int, now: datetime,
    ) -> _SweepOutcome | None:
        challenge = await session.get(Challenge, challenge_id)
        if challenge is None or not challenge.is_expired(now):
            return None

        ledger = ProgressLedger(session)
        result = await session.execute(
            select(ChallengeParticipant.user_id)
            .where(ChallengeParticipant.challenge_id == challenge_id)
        )
        participant_ids = list(result.scalars().all())
        users = await self._load_users(session, participant_ids)

        outcome = _SweepOutcome(action='reset' if challenge.is_official else 'deleted')

        if not challenge.is_official:
            completed_days = await ledger.counts_by_user(challenge_id)
            for user_id in participant_ids:
                days = completed_days.get(user_id, 0)
                if days < challenge.duration_days:
                    continue
                session.add(ChallengeCompletion(
                    user_id=user_id,
                    challenge_id=challenge_id,
                    title=challenge.title,
                    days_completed=days,
                    completed_at=now,
                ))
                if user_id in users:
                    users[user_id].completed_challenge_count += 1
                outcome.events.append(ChallengeCompleted(
                    challenge_id=challenge_id, user_id=user_id,
                    title=challenge.title, days_completed=days,
                ))

        await self._clear_members(session, challenge_id, users)

        if challenge.is_official:
            challenge.participant_count = 0
            challenge.start_date = now
        else:
            await session.delete(challenge)
        await session.flush()
        return outcome

    # ── Creator edits ─────────────────────────────────────────────────────────

    async def update_challenge(
        self,
        challenge_id: int,
        user_id: int,
        title: str | None = None,
        description: str | None = None,
    ) -> Challenge:
        """Rename or re-describe a challenge. Creator only."""

        async def work(session: AsyncSession) -> Challenge:
            challenge = await self._owned(session, challenge_id, user_id)
            if title is not None:
                if not title.strip():
                    raise InvalidChallenge('title must not be empty')
                challenge.title = title
            if description is not None:
                challenge.description = description
            await session.flush()
            return challenge

        return await self._transact(work, f'update challenge={challenge_id}')

    async def delete_challenge(self, challenge_id: int, user_id: int) -> None:
        """Delete a challenge with its memberships, ledger and leaderboard. Creator only.

        Participants get their active slot back; nobody is credited.
        """

        async def work(session: AsyncSession) -> int:
            challenge = await self._owned(session, challenge_id, user_id)
            result = await session.execute(
                select(ChallengeParticipant.user_id)
                .where(ChallengeParticipant.challenge_id == challenge_id)
            )
            participant_ids = list(result.scalars().all())
            users = await self._load_users(session, participant_ids)
            await self._clear_members(session, challenge_id, users)
            await session.delete(challenge)
            await session.flush()
            return len(participant_ids)

        released = await self._transact(work, f'delete challenge={challenge_id}')
        logger.info(
            'User %s deleted challenge %s (%d participants released)',
            user_id, challenge_id, released,
        )

    # ── Queries ───────────────────────────────────────────────────────────────

    async def get_challenge(self, challenge_id: int) -> Challenge | None:
        """Get a single challenge by ID."""
        async with self._read('get_challenge') as session:
            return await session.get(Challenge, challenge_id)

    async def list_challenges(
        self, official: bool | None = None, limit: int = 20, offset: int = 0,
    ) -> list[Challenge]:
        """Challenges newest first, optionally only official or only community."""
        query = select(Challenge).order_by(desc(Challenge.created_at), desc(Challenge.id))
        if official is not None:
            query = query.where(Challenge.is_official == official)
        async with self._read('list_challenges') as session:
            result = await session.execute(query.limit(limit).offset(offset))
            return list(result.scalars().all())

    async def get_user_challenges(self, user_id: int, role: str = 'joined') -> list[Challenge]:
        """Challenges a user joined, created, or has already finished."""
        async with self._read('get_user_challenges') as session:
            if role == 'created':
                result = await session.execute(
                    select(Challenge)
                    .where(Challenge.creator_id == user_id)
                    .order_by(desc(Challenge.created_at))
                )
                return list(result.scalars().all())

            result = await session.execute(
                select(Challenge)
                .join(ChallengeParticipant, ChallengeParticipant.challenge_id == Challenge.id)
                .where(ChallengeParticipant.user_id == user_id)
                .order_by(desc(ChallengeParticipant.joined_at))
            )
            joined = list(result.scalars().all())
            if role == 'joined':
                return joined
            if role != 'completed':
                raise ChallengeError(f'Unknown role: {role}')

            ledger = ProgressLedger(session)
            completed = []
            for challenge in joined:
                if await ledger.count_days(challenge.id, user_id) >= challenge.duration_days:
                    completed.append(challenge)
            return completed

    async def get_completions(self, user_id: int) -> list[ChallengeCompletion]:
        """Credits for community challenges the user finished before they closed."""
        async with self._read('get_completions') as session:
            result = await session.execute(
                select(ChallengeCompletion)
                .where(ChallengeCompletion.user_id == user_id)
                .order_by(desc(ChallengeCompletion.completed_at))
            )
            return list(result.scalars().all())

    async def is_participating(self, challenge_id: int, user_id: int) -> bool:
        async with self._read('is_participating') as session:
            return await self._membership(session, challenge_id, user_id) is not None

    # ── Helpers ───────────────────────────────────────────────────────────────

    async def _load_pair(
        self, session: AsyncSession, challenge_id: int, user_id: int,
    ) -> tuple[Challenge, User]:
        challenge = await session.get(Challenge, challenge_id)
        if challenge is None:
            raise ChallengeNotFound(f'Challenge {challenge_id} not found')
        user = await session.get(User, user_id)
        if user is None:
            raise UserNotFound(f'User {user_id} not found')
        return challenge, user

    async def _membership(
        self, session: AsyncSession, challenge_id: int, user_id: int,
    ) -> ChallengeParticipant | None:
        result = await session.execute(
            select(ChallengeParticipant)
            .where(ChallengeParticipant.challenge_id == challenge_id)
            .where(ChallengeParticipant.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def _load_users(self, session: AsyncSession, user_ids: list[int]) -> dict[int, User]:
        if not user_ids:
            return {}
        result = await session.execute(select(User).where(User.id.in_(user_ids)))
        return {user.id: user for user in result.scalars().all()}

    async def _owned(self, session: AsyncSession, challenge_id: int, user_id: int) -> Challenge:
        challenge, _ = await self._load_pair(session, challenge_id, user_id)
        if challenge.creator_id != user_id:
            raise NotChallengeCreator(
                f'User {user_id} did not create challenge {challenge_id}'
            )
        return challenge

    async def _clear_members(
        self, session: AsyncSession, challenge_id: int, users: dict[int, User],
    ) -> None:
        """Drop memberships, ledger and leaderboard rows; free each user's slot."""
        for user in users.values():
            user.active_challenge_count = max(0, user.active_challenge_count - 1)

        await session.execute(
            delete(ChallengeParticipant).where(ChallengeParticipant.challenge_id == challenge_id)
        )
        await ProgressLedger(session).clear_challenge(challenge_id)
        await LeaderboardService(session).clear_challenge(challenge_id)
