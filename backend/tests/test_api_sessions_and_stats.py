from datetime import date, timedelta

from fastapi.testclient import TestClient

from studytrack.main import app

client = TestClient(app)


def test_owner_scoped_routes_require_token():
    r = client.post('/timer-sessions', json={'subject': 'TYT Fizik', 'duration_seconds': 60, 'date': '2025-06-01'})
    assert r.status_code == 401
    r2 = client.get('/streak', headers={'Authorization': 'Bearer invalid.token.here'})
    assert r2.status_code == 401
    assert client.get('/auth/user').json() is None


def test_auth_callback_refreshes_profile(login):
    headers = login(client, sub='profile-user', email='a@example.com', first_name='Ada')
    me = client.get('/auth/user', headers=headers).json()
    assert me['id'] == 'profile-user'
    assert me['first_name'] == 'Ada'
    headers = login(client, sub='profile-user', email='b@example.com', first_name='Ada', last_name='L')
    me = client.get('/auth/user', headers=headers).json()
    assert me['email'] == 'b@example.com'
    assert me['last_name'] == 'L'


def test_create_session_validation(login):
    headers = login(client)
    bad_duration = {'subject': 'TYT Fizik', 'duration_seconds': -1, 'date': '2025-06-01'}
    assert client.post('/timer-sessions', json=bad_duration, headers=headers).status_code == 400
    empty_subject = {'subject': '  ', 'duration_seconds': 10, 'date': '2025-06-01'}
    assert client.post('/timer-sessions', json=empty_subject, headers=headers).status_code == 400
    for day in ('01/06/2025', '2025-02-30', '2025-6-1'):
        bad_date = {'subject': 'TYT Fizik', 'duration_seconds': 10, 'date': day}
        r = client.post('/timer-sessions', json=bad_date, headers=headers)
        assert r.status_code == 400
        assert r.json()['detail'][0]['loc'] == ['body', 'date']
    assert client.get('/timer-sessions/2025-06-01', headers=headers).json() == []


def test_sessions_by_date_and_range_are_owner_scoped(login):
    alice = login(client)
    bob = login(client)
    for day, secs in [('2025-06-01', 600), ('2025-06-01', 400), ('2025-06-03', 60)]:
        r = client.post('/timer-sessions', json={'subject': 'TYT Türkçe', 'duration_seconds': secs, 'date': day},
                        headers=alice)
        assert r.status_code == 200
    assert r.json()['duration_seconds'] == 60
    day_rows = client.get('/timer-sessions/2025-06-01', headers=alice).json()
    assert sorted(s['duration_seconds'] for s in day_rows) == [400, 600]
    ranged = client.get('/timer-sessions', params={'start_date': '2025-06-02', 'end_date': '2025-06-03'},
                        headers=alice).json()
    assert [s['date'] for s in ranged] == ['2025-06-03']
    assert client.get('/timer-sessions/2025-06-01', headers=bob).json() == []


def test_monthly_calendar(login):
    headers = login(client)
    for day, secs in [('2025-06-01', 600), ('2025-06-01', 400), ('2025-06-20', 30), ('2025-07-02', 5)]:
        client.post('/timer-sessions', json={'subject': 'AYT Kimya', 'duration_seconds': secs, 'date': day},
                    headers=headers)
    r = client.get('/monthly-study/2025/6', headers=headers)
    assert r.status_code == 200
    assert r.json() == [
        {'date': '2025-06-01', 'total_seconds': 1000},
        {'date': '2025-06-20', 'total_seconds': 30},
    ]
    assert client.get('/monthly-study/2025/13', headers=headers).status_code == 400


def test_streak_counts_back_from_today(login):
    headers = login(client)
    assert client.get('/streak', headers=headers).json() == {'streak': 0}
    today = date.today()
    for offset in (0, 1, 2, 4):
        day = (today - timedelta(days=offset)).isoformat()
        client.post('/timer-sessions', json={'subject': 'TYT Matematik', 'duration_seconds': 60, 'date': day},
                    headers=headers)
    assert client.get('/streak', headers=headers).json() == {'streak': 3}


def test_question_count_upsert_replaces(login):
    headers = login(client)
    payload = {'subject': 'Daily Total', 'count': 40, 'date': '2025-06-02'}
    first = client.post('/question-counts', json=payload, headers=headers)
    assert first.status_code == 200
    second = client.post('/question-counts', json={**payload, 'count': 55}, headers=headers)
    assert second.status_code == 200
    assert second.json()['id'] == first.json()['id']
    rows = client.get('/question-counts/2025-06-02', headers=headers).json()
    assert len(rows) == 1
    assert rows[0]['count'] == 55
    negative = client.post('/question-counts', json={**payload, 'count': -3}, headers=headers)
    assert negative.status_code == 400


def test_stats_range(login):
    headers = login(client)
    client.post('/question-counts', json={'subject': 'Daily Total', 'count': 20, 'date': '2025-05-10'}, headers=headers)
    for subject, secs in [('TYT Fizik', 300), ('TYT Kimya', 200), ('TYT Fizik', 100)]:
        client.post('/timer-sessions', json={'subject': subject, 'duration_seconds': secs, 'date': '2025-05-10'},
                    headers=headers)
    r = client.get('/stats', params={'start_date': '2025-05-01', 'end_date': '2025-05-31'}, headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body['total_seconds'] == 600
    assert body['total_questions'] == 20
    assert body['by_subject'] == {'TYT Fizik': 400, 'TYT Kimya': 200}
    assert len(body['timer_sessions']) == 3
    backwards = client.get('/stats', params={'start_date': '2025-05-31', 'end_date': '2025-05-01'}, headers=headers)
    assert backwards.status_code == 400


def test_request_id_header_exists():
    r = client.get('/health')
    assert r.status_code == 200
    assert 'X-Request-ID' in r.headers
    r2 = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r2.headers['X-Request-ID'] == 'abc123'
