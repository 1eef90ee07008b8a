import asyncio
import os

# Keep the module-level engine off Postgres; every test gets its own file db below
os.environ.setdefault('DATABASE_URL', 'sqlite+aiosqlite://')

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

import streakboard.models  # noqa: F401
from streakboard.config import Settings
from streakboard.db.database import Base, get_db, get_session_factory
from streakboard.dependencies import get_clock, get_event_sink, get_metric_provider
from streakboard.main import app
from streakboard.models.user import User
from streakboard.services.challenge_service import ChallengeService
from streakboard.services.clock import FixedClock
from streakboard.services.verification_service import VerificationService


# Tuesday afternoon UTC; every zone used in the tests has a well-defined local day
START = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


class FakeMetricProvider:
    """Metric provider returning canned values per (user, metric)."""

    def __init__(self):
        self.values: dict = {}
        self.calls: list = []
        self.error: Exception | None = None
        self.delay: float = 0

    def set(self, user_id, metric, value):
        self.values[(user_id, getattr(metric, 'value', metric))] = value

    async def sample(self, user_id, metric, start, end):
        self.calls.append((user_id, metric, start, end))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.values.get((user_id, metric.value), 0.0)


class RecordingEventSink:
    def __init__(self):
        self.events: list = []
        self.fail = False

    async def publish(self, event):
        if self.fail:
            raise RuntimeError('sink down')
        self.events.append(event)

    def named(self, name):
        return [e for e in self.events if e.name == name]


@pytest.fixture
async def engine(tmp_path):
    """File-backed sqlite per test so concurrent sessions really contend."""
    engine = create_async_engine(f'sqlite+aiosqlite:///{tmp_path / "streakboard.db"}', echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def drop_table(engine):
    """Break the store underneath the services by dropping a table."""

    async def _drop(name: str):
        async with engine.begin() as conn:
            await conn.execute(text(f'DROP TABLE {name}'))

    return _drop


@pytest.fixture
def test_settings():
    return Settings(
        database_url='sqlite+aiosqlite://',
        free_tier_challenge_limit=3,
        verify_max_retries=3,
        metric_provider_timeout=0.5,
    )


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def metrics():
    return FakeMetricProvider()


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def challenge_service(session_factory, clock, events, test_settings):
    return ChallengeService(session_factory, clock=clock, events=events, config=test_settings)


@pytest.fixture
def verification_service(session_factory, metrics, clock, events, test_settings):
    return VerificationService(
        session_factory, metrics, clock=clock, events=events, config=test_settings,
    )


@pytest.fixture
def make_user(session_factory):
    """Factory: insert a user and return it."""
    counter = {'n': 0}

    async def _make(username: str | None = None, tz: str = 'UTC', is_pro: bool = False) -> User:
        counter['n'] += 1
        async with session_factory() as session:
            user = User(
                username=username or f'user{counter["n"]}',
                timezone=tz,
                is_pro=is_pro,
            )
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture
def make_challenge(challenge_service):
    """Factory: create a challenge with sensible defaults."""

    async def _make(**overrides):
        params = {
            'title': 'Daily check-in',
            'challenge_type': 'lifestyle',
            'verification_kind': 'checkbox',
            'max_participants': 10,
            'duration_days': 30,
        }
        params.update(overrides)
        return await challenge_service.create_challenge(**params)

    return _make


@pytest.fixture
async def client(session_factory, clock, metrics, events):
    """Async HTTP client wired to the per-test database and fakes."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_metric_provider] = lambda: metrics
    app.dependency_overrides[get_event_sink] = lambda: events

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()
