"""FastAPI providers for the engine's collaborators.

Tests swap any of these through app.dependency_overrides.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streakboard.config import settings
from streakboard.db.database import get_session_factory
from streakboard.services.activity_service import ActivityLog
from streakboard.services.challenge_service import ChallengeService
from streakboard.services.clock import Clock, SystemClock
from streakboard.services.events import EventSink, FanOutSink
from streakboard.services.metric_provider import HttpMetricProvider, MetricProvider
from streakboard.services.verification_service import VerificationService
from streakboard.services.ws_manager import ActivityFeedManager

# Global live feed manager; events reach it next to the persisted log
activity_feed = ActivityFeedManager()

_system_clock = SystemClock()


def get_clock() -> Clock:
    return _system_clock


def get_activity_log(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
) -> ActivityLog:
    return ActivityLog(session_factory, clock=clock)


def get_event_sink(activity_log: ActivityLog = Depends(get_activity_log)) -> EventSink:
    return FanOutSink(activity_log, activity_feed)


def get_metric_provider() -> MetricProvider:
    return HttpMetricProvider(settings.metric_provider_url)


def get_challenge_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
    events: EventSink = Depends(get_event_sink),
) -> ChallengeService:
    return ChallengeService(session_factory, clock=clock, events=events)


def get_verification_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    metric_provider: MetricProvider = Depends(get_metric_provider),
    clock: Clock = Depends(get_clock),
    events: EventSink = Depends(get_event_sink),
) -> VerificationService:
    return VerificationService(session_factory, metric_provider, clock=clock, events=events)
