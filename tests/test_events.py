from datetime import date

from streakboard.services.events import (
    ChallengeCompleted, DailyCompletionRecorded, event_payload, publish_quietly,
)
from streakboard.services.ws_manager import ActivityFeedManager


class FakeSocket:
    def __init__(self, broken=False):
        self.accepted = False
        self.sent = []
        self.broken = broken

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError('socket closed')
        self.sent.append(message)


def test_payload_is_json_ready():
    event = DailyCompletionRecorded(challenge_id=1, user_id=2, day=date(2026, 3, 10), current_streak=4)
    payload = event_payload(event)
    assert payload['day'] == '2026-03-10'
    assert payload['name'] == 'daily_completion_recorded'
    assert payload['current_streak'] == 4


async def test_publish_quietly_swallows_sink_failures(events):
    events.fail = True
    await publish_quietly(events, ChallengeCompleted(challenge_id=1, user_id=2, title='Run'))
    assert events.events == []


async def test_feed_delivers_to_the_users_sockets():
    feed = ActivityFeedManager()
    mine, theirs = FakeSocket(), FakeSocket()
    await feed.connect(mine, 1)
    await feed.connect(theirs, 2)

    await feed.publish(ChallengeCompleted(challenge_id=7, user_id=1, title='Run', days_completed=30))

    assert mine.accepted
    assert mine.sent == [{
        'type': 'challenge_completed',
        'challenge_id': 7,
        'user_id': 1,
        'title': 'Run',
        'days_completed': 30,
        'name': 'challenge_completed',
    }]
    assert theirs.sent == []


async def test_feed_drops_dead_connections():
    feed = ActivityFeedManager()
    dead = FakeSocket(broken=True)
    await feed.connect(dead, 1)

    await feed.send_to_user(1, {'type': 'ping'})

    assert 1 not in feed.active_connections
