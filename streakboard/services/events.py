"""Domain events and the fire-and-forget sinks that consume them.

Notification and activity-feed collaborators subscribe through an EventSink.
Publishing never participates in a transaction and a failing sink never fails
the operation that emitted the event.
"""
import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyCompletionRecorded:
    challenge_id: int
    user_id: int
    day: date
    current_streak: int = 0
    score: int = 0
    name: str = field(default='daily_completion_recorded', init=False)


@dataclass(frozen=True)
class ChallengeCompleted:
    challenge_id: int
    user_id: int
    title: str
    days_completed: int = 0
    name: str = field(default='challenge_completed', init=False)


DomainEvent = DailyCompletionRecorded | ChallengeCompleted


def event_payload(event: DomainEvent) -> dict:
    """JSON-ready dict for sockets and logs."""
    payload = asdict(event)
    for key, value in payload.items():
        if isinstance(value, (date, datetime)):
            payload[key] = value.isoformat()
    return payload


class EventSink(Protocol):
    async def publish(self, event: DomainEvent) -> None:
        ...


class LoggingEventSink:
    """Default sink: writes events to the log."""

    async def publish(self, event: DomainEvent) -> None:
        logger.info('event %s %s', event.name, event_payload(event))


async def publish_quietly(sink: EventSink, event: DomainEvent) -> None:
    """Deliver an event, logging (not raising) sink failures."""
    try:
        await sink.publish(event)
    except Exception:
        logger.warning('Event sink failed for %s', event.name, exc_info=True)


class FanOutSink:
    """Delivers each event to several sinks; one failing sink doesn't stop the rest."""

    def __init__(self, *sinks: EventSink):
        self.sinks = sinks

    async def publish(self, event: DomainEvent) -> None:
        for sink in self.sinks:
            await publish_quietly(sink, event)
