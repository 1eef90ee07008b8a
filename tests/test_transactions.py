import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from streakboard.models.completion import ChallengeCompletion
from streakboard.models.user import User
from streakboard.services.transactions import (
    ConcurrentModification, StorageError, is_conflict, read_session, run_in_transaction,
)

SQLITE_DUPLICATE_DAY = IntegrityError(
    'INSERT', {},
    Exception('UNIQUE constraint failed: progress_entries.challenge_id, '
              'progress_entries.user_id, progress_entries.day'),
)
POSTGRES_DUPLICATE_MEMBER = IntegrityError(
    'INSERT', {},
    Exception('duplicate key value violates unique constraint "unique_participant"'),
)


async def test_commits_on_success(session_factory):
    async def work(session):
        session.add(User(username='alice'))
        return 'ok'

    assert await run_in_transaction(session_factory, work) == 'ok'

    async with session_factory() as session:
        result = await session.execute(select(User.username))
        assert result.scalars().all() == ['alice']


async def test_business_errors_roll_back_and_propagate(session_factory):
    async def work(session):
        session.add(User(username='bob'))
        await session.flush()
        raise ValueError('rejected')

    with pytest.raises(ValueError):
        await run_in_transaction(session_factory, work)

    async with session_factory() as session:
        result = await session.execute(select(User))
        assert result.scalars().all() == []


async def test_conflicts_are_retried(session_factory):
    attempts = []

    async def work(session):
        attempts.append(1)
        if len(attempts) == 1:
            raise SQLITE_DUPLICATE_DAY
        if len(attempts) == 2:
            raise StaleDataError('challenges row changed')
        return len(attempts)

    assert await run_in_transaction(session_factory, work, retries=3) == 3


async def test_persistent_conflict_gives_up(session_factory):
    attempts = []

    async def work(session):
        attempts.append(1)
        raise POSTGRES_DUPLICATE_MEMBER

    with pytest.raises(ConcurrentModification):
        await run_in_transaction(session_factory, work, retries=2)
    assert len(attempts) == 2


async def test_other_integrity_errors_are_not_retried(session_factory):
    attempts = []

    async def work(session):
        attempts.append(1)
        raise IntegrityError('INSERT', {}, Exception('FOREIGN KEY constraint failed'))

    with pytest.raises(StorageError):
        await run_in_transaction(session_factory, work, retries=3)
    assert len(attempts) == 1


async def test_real_duplicate_completion_is_a_storage_error(session_factory, make_user):
    user = await make_user()
    attempts = []

    async def work(session):
        attempts.append(1)
        for _ in range(2):
            session.add(ChallengeCompletion(
                user_id=user.id, challenge_id=1, title='Run', days_completed=5,
            ))
        await session.flush()

    with pytest.raises(StorageError):
        await run_in_transaction(session_factory, work)
    assert len(attempts) == 1


def test_conflict_classification():
    assert is_conflict(SQLITE_DUPLICATE_DAY)
    assert is_conflict(POSTGRES_DUPLICATE_MEMBER)
    assert is_conflict(IntegrityError(
        'INSERT', {}, Exception('UNIQUE constraint failed: leaderboard_entries.challenge_id, '
                                'leaderboard_entries.user_id'),
    ))
    assert is_conflict(StaleDataError('stale'))
    assert not is_conflict(IntegrityError(
        'INSERT', {}, Exception('duplicate key value violates unique constraint "unique_completion"'),
    ))
    assert not is_conflict(OperationalError('SELECT', {}, Exception('locked')))


async def test_other_database_errors_become_storage_errors(session_factory):
    async def work(session):
        raise OperationalError('SELECT', {}, Exception('disk I/O error'))

    with pytest.raises(StorageError):
        await run_in_transaction(session_factory, work)


async def test_read_session_maps_database_errors(session_factory):
    with pytest.raises(StorageError):
        async with read_session(session_factory, 'lookup') as session:
            await session.execute(text('SELECT * FROM no_such_table'))


async def test_read_session_passes_other_errors_through(session_factory):
    with pytest.raises(LookupError):
        async with read_session(session_factory) as session:
            await session.execute(select(User))
            raise LookupError('missing')
