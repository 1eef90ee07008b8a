"""Transactional boundary over the document store.

Every state change in the engine runs through run_in_transaction: a fresh
session per attempt, all-or-nothing commit, automatic retry when another
writer got there first (unique-constraint hit or stale optimistic version).
Reads go through read_session so they fail the same way.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_RETRIES = 3

# Unique constraints a concurrent writer can win. Postgres names the
# constraint in the error; sqlite only lists the columns.
CONFLICT_CONSTRAINTS = {
    'unique_progress_day': 'progress_entries.challenge_id, progress_entries.user_id, progress_entries.day',
    'unique_participant': 'challenge_participants.challenge_id, challenge_participants.user_id',
    'unique_leaderboard_entry': 'leaderboard_entries.challenge_id, leaderboard_entries.user_id',
}


class StorageError(Exception):
    """Opaque persistence failure surfaced to the caller."""
    pass


class ConcurrentModification(Exception):
    """Transaction kept conflicting with concurrent writers."""
    pass


def is_conflict(error: Exception) -> bool:
    """True for errors another writer caused: stale versions and racing inserts."""
    if isinstance(error, StaleDataError):
        return True
    if not isinstance(error, IntegrityError):
        return False
    message = str(error.orig if error.orig is not None else error)
    return any(
        name in message or columns in message
        for name, columns in CONFLICT_CONSTRAINTS.items()
    )


@asynccontextmanager
async def read_session(
    session_factory: async_sessionmaker[AsyncSession],
    label: str = 'read',
) -> AsyncIterator[AsyncSession]:
    """Session for read-only work; database failures surface as StorageError."""
    try:
        async with session_factory() as session:
            yield session
    except SQLAlchemyError as e:
        logger.error('%s failed: %s', label, e, exc_info=True)
        raise StorageError(f'{label} failed') from e


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    retries: int = DEFAULT_RETRIES,
    label: str = 'transaction',
) -> T:
    """Run `work(session)` inside one transaction, retrying conflicts.

    Raises ConcurrentModification once `retries` attempts have conflicted and
    StorageError for any other database failure, including integrity errors
    no concurrent writer could have caused. Exceptions raised by `work`
    itself (business rejections) propagate unchanged after rollback.
    """
    last_conflict: Exception | None = None
    for attempt in range(1, max(1, retries) + 1):
        try:
            async with session_factory() as session:
                async with session.begin():
                    return await work(session)
        except (IntegrityError, StaleDataError) as e:
            if not is_conflict(e):
                logger.error('%s violated a constraint: %s', label, e, exc_info=True)
                raise StorageError(f'{label} failed') from e
            last_conflict = e
            logger.info(
                '%s conflicted (attempt %d/%d): %s',
                label, attempt, retries, e.__class__.__name__,
            )
        except SQLAlchemyError as e:
            logger.error('%s failed: %s', label, e, exc_info=True)
            raise StorageError(f'{label} failed') from e

    raise ConcurrentModification(
        f'{label} conflicted {retries} times; giving up'
    ) from last_conflict
