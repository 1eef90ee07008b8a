import pytest

from streakboard.services.metric_provider import ProviderError


async def create_user(client, username='alice', **extra):
    response = await client.post('/api/users', json={'username': username, **extra})
    assert response.status_code == 201, response.text
    return response.json()


async def create_challenge(client, **overrides):
    payload = {
        'title': 'Meditate',
        'challenge_type': 'lifestyle',
        'verification_kind': 'timer_duration',
        'goal': 10,
        'max_participants': 2,
        'duration_days': 21,
    }
    payload.update(overrides)
    response = await client.post('/api/challenges', json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def test_health(client):
    response = await client.get('/health')
    assert response.status_code == 200
    assert response.json()['status'] == 'ok'


class TestUsers:
    async def test_create_and_fetch(self, client):
        user = await create_user(client, timezone='Europe/Paris')

        response = await client.get(f'/api/users/{user["id"]}')

        assert response.status_code == 200
        assert response.json()['timezone'] == 'Europe/Paris'
        assert response.json()['active_challenge_count'] == 0

    async def test_duplicate_username(self, client):
        await create_user(client)
        response = await client.post('/api/users', json={'username': 'alice'})
        assert response.status_code == 400

    async def test_unknown_timezone(self, client):
        response = await client.post('/api/users', json={'username': 'bob', 'timezone': 'Mars/Base'})
        assert response.status_code == 400

    async def test_upgrade_to_pro(self, client):
        user = await create_user(client)
        response = await client.patch(f'/api/users/{user["id"]}', json={'is_pro': True})
        assert response.json()['is_pro'] is True


class TestChallenges:
    async def test_create_and_get(self, client):
        challenge = await create_challenge(client)

        response = await client.get(f'/api/challenges/{challenge["id"]}')

        assert response.status_code == 200
        body = response.json()
        assert body['verification_kind'] == 'timer_duration'
        assert body['participant_count'] == 0
        assert body['ends_at'] > body['start_date']

    async def test_invalid_configuration(self, client):
        response = await client.post('/api/challenges', json={
            'title': 'Somewhere',
            'challenge_type': 'lifestyle',
            'verification_kind': 'location_check',
            'max_participants': 5,
            'duration_days': 7,
        })
        assert response.status_code == 400

    async def test_not_found(self, client):
        response = await client.get('/api/challenges/999')
        assert response.status_code == 404

    async def test_join_capacity_and_entitlement(self, client):
        challenge = await create_challenge(client, max_participants=1)
        alice = await create_user(client, 'alice')
        bob = await create_user(client, 'bob')

        joined = await client.post(f'/api/challenges/{challenge["id"]}/join', json={'user_id': alice['id']})
        rejoined = await client.post(f'/api/challenges/{challenge["id"]}/join', json={'user_id': alice['id']})
        full = await client.post(f'/api/challenges/{challenge["id"]}/join', json={'user_id': bob['id']})

        assert joined.status_code == 200 and joined.json()['joined'] is True
        assert rejoined.status_code == 200 and rejoined.json()['already_member'] is True
        assert full.status_code == 409

        for _ in range(2):
            other = await create_challenge(client)
            await client.post(f'/api/challenges/{other["id"]}/join', json={'user_id': alice['id']})
        fourth = await create_challenge(client)
        limited = await client.post(f'/api/challenges/{fourth["id"]}/join', json={'user_id': alice['id']})
        assert limited.status_code == 403

    async def test_leave(self, client):
        challenge = await create_challenge(client)
        alice = await create_user(client)
        await client.post(f'/api/challenges/{challenge["id"]}/join', json={'user_id': alice['id']})

        response = await client.post(f'/api/challenges/{challenge["id"]}/leave', json={'user_id': alice['id']})

        assert response.json() == {'left': True}
        check = await client.get(f'/api/challenges/{challenge["id"]}/participants/{alice["id"]}')
        assert check.json() == {'participating': False}


class TestVerify:
    async def test_verify_flow(self, client):
        challenge = await create_challenge(client)
        alice = await create_user(client)
        url = f'/api/challenges/{challenge["id"]}/verify'

        short = await client.post(url, json={'user_id': alice['id'], 'evidence': 5})
        assert short.status_code == 200
        assert short.json()['status'] == 'goal_not_met'

        done = await client.post(url, json={'user_id': alice['id'], 'evidence': 12})
        assert done.status_code == 200
        assert done.json()['status'] == 'verified'
        assert done.json()['entry']['days_completed'] == 1

        again = await client.post(url, json={'user_id': alice['id'], 'evidence': 12})
        assert again.json()['status'] == 'already_verified_today'

        progress = await client.get(f'/api/challenges/{challenge["id"]}/progress/{alice["id"]}')
        assert progress.json()['days_completed'] == 1
        assert progress.json()['completed_today'] is True

        board = await client.get(f'/api/challenges/{challenge["id"]}/leaderboard')
        assert [e['user_id'] for e in board.json()] == [alice['id']]

    async def test_invalid_evidence_is_422(self, client):
        challenge = await create_challenge(client)
        alice = await create_user(client)

        response = await client.post(
            f'/api/challenges/{challenge["id"]}/verify',
            json={'user_id': alice['id'], 'evidence': 'ages'},
        )

        assert response.status_code == 422
        assert response.json()['status'] == 'invalid_evidence'

    async def test_provider_unavailable_is_503(self, client, metrics):
        challenge = await create_challenge(
            client, title='Walk 10,000 steps', challenge_type='fitness',
            verification_kind='metric_threshold', goal=None,
        )
        alice = await create_user(client)
        metrics.error = ProviderError('bridge down')

        response = await client.post(
            f'/api/challenges/{challenge["id"]}/verify', json={'user_id': alice['id']},
        )

        assert response.status_code == 503
        assert response.json()['retryable'] is True

    async def test_unknown_user(self, client):
        challenge = await create_challenge(client)
        response = await client.post(
            f'/api/challenges/{challenge["id"]}/verify', json={'user_id': 999, 'evidence': 12},
        )
        assert response.status_code == 404


async def test_sweep_endpoint_and_completions(client, clock):
    challenge = await create_challenge(client, duration_days=1)
    alice = await create_user(client)
    await client.post(f'/api/challenges/{challenge["id"]}/join', json={'user_id': alice['id']})
    await client.post(
        f'/api/challenges/{challenge["id"]}/verify', json={'user_id': alice['id'], 'evidence': 15},
    )

    clock.advance(days=2)
    response = await client.post('/api/challenges/sweep')

    assert response.json() == {'reset': 0, 'deleted': 1, 'credited': 1, 'skipped': 0}
    completions = await client.get(f'/api/users/{alice["id"]}/completions')
    assert [c['title'] for c in completions.json()] == ['Meditate']
    gone = await client.get(f'/api/challenges/{challenge["id"]}')
    assert gone.status_code == 404


@pytest.mark.parametrize('role', ['joined', 'created', 'completed'])
async def test_user_challenge_roles(client, role):
    alice = await create_user(client)
    challenge = await create_challenge(client, creator_id=alice['id'], duration_days=1)
    await client.post(f'/api/challenges/{challenge["id"]}/join', json={'user_id': alice['id']})
    await client.post(
        f'/api/challenges/{challenge["id"]}/verify', json={'user_id': alice['id'], 'evidence': 10},
    )

    response = await client.get(f'/api/users/{alice["id"]}/challenges', params={'role': role})

    assert response.status_code == 200
    assert [c['id'] for c in response.json()] == [challenge['id']]


class TestCreatorEdits:
    async def test_patch_by_creator_only(self, client):
        alice = await create_user(client, 'alice')
        bob = await create_user(client, 'bob')
        challenge = await create_challenge(client, creator_id=alice['id'])
        url = f'/api/challenges/{challenge["id"]}'

        renamed = await client.patch(url, json={'user_id': alice['id'], 'title': 'Sit still'})
        refused = await client.patch(url, json={'user_id': bob['id'], 'title': 'Mine'})

        assert renamed.status_code == 200
        assert renamed.json()['title'] == 'Sit still'
        assert refused.status_code == 403

    async def test_delete(self, client):
        alice = await create_user(client, 'alice')
        bob = await create_user(client, 'bob')
        challenge = await create_challenge(client, creator_id=alice['id'])
        url = f'/api/challenges/{challenge["id"]}'
        await client.post(f'{url}/join', json={'user_id': bob['id']})

        refused = await client.delete(url, params={'user_id': bob['id']})
        deleted = await client.delete(url, params={'user_id': alice['id']})

        assert refused.status_code == 403
        assert deleted.status_code == 204
        assert (await client.get(url)).status_code == 404
        member = await client.get(f'/api/users/{bob["id"]}')
        assert member.json()['active_challenge_count'] == 0


async def test_numeric_evidence_counts_as_text(client):
    challenge = await create_challenge(client, verification_kind='manual_text', goal=None)
    alice = await create_user(client)

    response = await client.post(
        f'/api/challenges/{challenge["id"]}/verify', json={'user_id': alice['id'], 'evidence': 42},
    )

    assert response.status_code == 200
    assert response.json()['status'] == 'verified'
