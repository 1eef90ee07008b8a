"""Seed script — wipe all data, create the official challenges and test accounts.

Usage:
    python seed.py

Usage (from host, via docker):
    docker compose exec api python seed.py
"""
import asyncio

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.db.database import engine, async_session
from streakboard.models.user import User
from streakboard.services.challenge_service import ChallengeService


# Official challenges reset in place when they expire
OFFICIAL_CHALLENGES = [
    {
        'title': '30-Day Fitness',
        'description': 'Complete daily workouts for 30 days',
        'difficulty': 'medium',
        'challenge_type': 'fitness',
        'verification_kind': 'metric_threshold',
        'metric': 'workout_time',
        'goal': 30,
        'max_participants': 1500,
        'duration_days': 30,
    },
    {
        'title': 'Learn a Language',
        'description': 'Master 100 new words in a month',
        'difficulty': 'hard',
        'challenge_type': 'education',
        'verification_kind': 'manual_numeric',
        'goal': 4,
        'max_participants': 2000,
        'duration_days': 30,
    },
    {
        'title': 'Meditation Challenge',
        'description': 'Meditate for 10 minutes daily',
        'difficulty': 'easy',
        'challenge_type': 'lifestyle',
        'verification_kind': 'timer_duration',
        'goal': 10,
        'max_participants': 3000,
        'duration_days': 21,
    },
    {
        'title': 'Coding Sprint',
        'description': 'Build a simple app in 7 days',
        'difficulty': 'hard',
        'challenge_type': 'education',
        'verification_kind': 'checkbox',
        'max_participants': 500,
        'duration_days': 7,
    },
    {
        'title': 'Reading Marathon',
        'description': 'Read 5 books in a month',
        'difficulty': 'medium',
        'challenge_type': 'education',
        'verification_kind': 'manual_numeric',
        'goal': 20,
        'max_participants': 1200,
        'duration_days': 30,
    },
]

# Test accounts to create
TEST_USERS = [
    {'username': 'alice', 'timezone': 'America/New_York', 'is_pro': False},
    {'username': 'bob', 'timezone': 'Europe/London', 'is_pro': False},
    {'username': 'eve', 'timezone': 'Asia/Tokyo', 'is_pro': True},
]


async def wipe_all(db: AsyncSession):
    """Truncate all tables in dependency-safe order."""
    tables = [
        'activity_items',
        'challenge_completions',
        'leaderboard_entries',
        'progress_entries',
        'challenge_participants',
        'challenges',
        'users',
    ]
    for table in tables:
        await db.execute(text(f'TRUNCATE TABLE {table} RESTART IDENTITY CASCADE'))
    await db.commit()
    print('✓ All tables wiped')


async def create_users(db: AsyncSession):
    for u in TEST_USERS:
        user = User(username=u['username'], timezone=u['timezone'], is_pro=u['is_pro'])
        db.add(user)
        await db.flush()
        await db.refresh(user)
        tier = 'pro' if u['is_pro'] else 'free'
        print(f'  ✓ @{u["username"]} — {u["timezone"]}, {tier}, id={user.id}')

    await db.commit()


async def create_official_challenges():
    service = ChallengeService(async_session)
    for c in OFFICIAL_CHALLENGES:
        challenge = await service.create_challenge(is_official=True, **c)
        print(f'  ✓ {challenge.title} — {challenge.verification_kind}, {challenge.duration_days} days')


async def main():
    print()
    print('=' * 50)
    print('  Streakboard Seed Script')
    print('=' * 50)
    print()

    async with async_session() as db:
        print('[1/3] Wiping all data...')
        await wipe_all(db)

        print('[2/3] Creating test users...')
        await create_users(db)

    print('[3/3] Creating official challenges...')
    await create_official_challenges()

    await engine.dispose()

    print()
    print('Done! Ready for testing.')
    print()


if __name__ == '__main__':
    asyncio.run(main())
