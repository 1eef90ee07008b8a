from datetime import date

from streakboard.services.activity_service import ActivityLog, describe
from streakboard.services.events import (
    ChallengeCompleted, DailyCompletionRecorded, FanOutSink,
)


def test_descriptions():
    assert describe(DailyCompletionRecorded(1, 2, date(2026, 3, 10), current_streak=1), 'Run') == 'Checked in on Run'
    assert describe(
        DailyCompletionRecorded(1, 2, date(2026, 3, 10), current_streak=4), 'Run',
    ) == 'Checked in on Run, 4 days in a row'
    assert describe(ChallengeCompleted(1, 2, 'Run', days_completed=30)) == 'Finished Run (30 days)'


async def test_log_keeps_recent_items_newest_first(session_factory, clock, make_user, make_challenge):
    alice, bob = await make_user(), await make_user()
    challenge = await make_challenge(title='Stretch')
    log = ActivityLog(session_factory, clock=clock)

    await log.publish(DailyCompletionRecorded(challenge.id, alice.id, date(2026, 3, 10), current_streak=1))
    clock.advance(hours=1)
    await log.publish(DailyCompletionRecorded(challenge.id, bob.id, date(2026, 3, 10), current_streak=2))
    clock.advance(hours=1)
    await log.publish(ChallengeCompleted(challenge.id, alice.id, 'Stretch', days_completed=30))

    items = await log.recent()
    assert [(i.user_id, i.kind) for i in items] == [
        (alice.id, 'challenge_completed'),
        (bob.id, 'daily_completion_recorded'),
        (alice.id, 'daily_completion_recorded'),
    ]
    assert items[1].description == 'Checked in on Stretch, 2 days in a row'
    assert [i.kind for i in await log.recent(user_id=bob.id)] == ['daily_completion_recorded']
    assert len(await log.recent(limit=2)) == 2


async def test_recent_caps_at_twenty(session_factory, clock, make_user, make_challenge):
    user = await make_user()
    challenge = await make_challenge()
    log = ActivityLog(session_factory, clock=clock)
    for _ in range(25):
        await log.publish(DailyCompletionRecorded(challenge.id, user.id, date(2026, 3, 10)))
        clock.advance(minutes=1)

    assert len(await log.recent()) == 20


async def test_verification_reaches_the_log(
    session_factory, verification_service, events, clock, make_user, make_challenge,
):
    user = await make_user()
    challenge = await make_challenge(title='Journal')
    log = ActivityLog(session_factory, clock=clock)
    verification_service.events = FanOutSink(log, events)

    await verification_service.verify_today(challenge.id, user.id, True)

    [item] = await log.recent()
    assert (item.user_id, item.challenge_id) == (user.id, challenge.id)
    assert item.description == 'Checked in on Journal'
    assert len(events.events) == 1


async def test_fan_out_survives_a_failing_sink(events):
    broken = type(events)()
    broken.fail = True
    sink = FanOutSink(broken, events)

    await sink.publish(ChallengeCompleted(challenge_id=1, user_id=2, title='Run'))

    assert [e.name for e in events.events] == ['challenge_completed']


async def test_recent_endpoint(client, session_factory, clock, make_user, make_challenge):
    user = await make_user()
    challenge = await make_challenge(title='Walk')
    log = ActivityLog(session_factory, clock=clock)
    for streak in (1, 2, 3):
        await log.publish(DailyCompletionRecorded(challenge.id, user.id, date(2026, 3, 10), current_streak=streak))
        clock.advance(hours=1)

    response = await client.get('/api/activity/recent', params={'limit': 2})

    assert response.status_code == 200
    body = response.json()
    assert [item['description'] for item in body] == [
        'Checked in on Walk, 3 days in a row',
        'Checked in on Walk, 2 days in a row',
    ]
    assert body[0]['kind'] == 'daily_completion_recorded'
