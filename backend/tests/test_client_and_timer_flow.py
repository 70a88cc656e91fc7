import uuid

import httpx
import pytest
from fastapi.testclient import TestClient

from studytrack.client import StudyTrackerClient
from studytrack.errors import AuthError, NotFoundError, TransientStoreError, ValidationError
from studytrack.main import app
from studytrack.timer import ApiSessionGateway, Notifier, PomodoroState, SessionTimer


class CountingNotifier(Notifier):
    def __init__(self):
        self.alerts = 0
        self.errors = []

    def alert(self):
        self.alerts += 1

    def notify(self, title, message, error=False):
        if error:
            self.errors.append(message)


@pytest.fixture
def api(identity_token):
    api = StudyTrackerClient(TestClient(app))
    api.login(identity_token(f"client-flow-{uuid.uuid4().hex[:6]}"))
    return api


def test_client_requires_login():
    anonymous = StudyTrackerClient(TestClient(app))
    with pytest.raises(AuthError):
        anonymous.streak()


def test_save_invalidates_cached_reads(api):
    day = '2025-03-14'
    assert api.timer_sessions(day) == []
    api.monthly_study(2025, 3)
    api.stats('2025-03-01', '2025-03-31')
    api.stats('2025-04-01', '2025-04-30')
    api.question_counts('2025-03-15')
    api.streak()
    api.create_timer_session('TYT Biyoloji', 120, day)
    keys = api.cached_keys()
    assert ('timer-sessions', day) not in keys
    assert ('monthly-study', 2025, 3) not in keys
    assert ('stats', '2025-03-01', '2025-03-31') not in keys
    assert ('streak',) not in keys
    assert ('stats', '2025-04-01', '2025-04-30') in keys
    assert ('question-counts', '2025-03-15') in keys
    assert [s['duration_seconds'] for s in api.timer_sessions(day)] == [120]
    assert api.monthly_study(2025, 3) == [{'date': day, 'total_seconds': 120}]


def test_client_maps_validation_errors(api):
    with pytest.raises(ValidationError):
        api.create_timer_session('', 10, '2025-03-14')
    assert api.delete_net_result(999999) is False


def test_pomodoro_autosave_through_api(api):
    notifier = CountingNotifier()
    timer = SessionTimer(ApiSessionGateway(api), notifier, pomodoro_minutes=1, today=lambda: '2025-02-02')
    timer.select_subject('AYT Matematik')
    timer.start_pomodoro()
    for _ in range(75):
        timer.tick()
    assert timer.pomodoro.state is PomodoroState.COMPLETED
    assert notifier.alerts == 1
    assert notifier.errors == []
    saved = api.timer_sessions('2025-02-02')
    assert [(s['subject'], s['duration_seconds']) for s in saved] == [('AYT Matematik', 60)]


def test_stopwatch_failure_keeps_time(api):
    notifier = CountingNotifier()
    api.token = 'expired-or-bogus'
    timer = SessionTimer(ApiSessionGateway(api), notifier, today=lambda: '2025-02-03')
    timer.start_stopwatch()
    for _ in range(12):
        timer.tick()
    timer.pause_stopwatch()
    assert timer.save_stopwatch() is True
    assert notifier.errors
    assert timer.stopwatch.elapsed == 12
    assert not timer.saving


def test_current_user_and_session_range(api):
    me = api.current_user()
    assert me['id'].startswith('client-flow-')
    api.create_timer_session('TYT Kimya', 300, '2025-05-01')
    api.create_timer_session('TYT Kimya', 200, '2025-05-03')
    api.create_timer_session('TYT Kimya', 100, '2025-05-09')
    ranged = api.timer_sessions_range('2025-05-01', '2025-05-03')
    assert [(s['date'], s['duration_seconds']) for s in ranged] == [('2025-05-01', 300), ('2025-05-03', 200)]
    with pytest.raises(ValidationError):
        api.timer_sessions_range('2025-05-09', '2025-05-01')


def test_todo_methods(api):
    todo = api.create_todo('Paragraf denemesi')
    assert todo['completed'] is False
    updated = api.update_todo(todo['id'], completed=True)
    assert updated == {'id': todo['id'], 'title': 'Paragraf denemesi', 'completed': True}
    assert api.todos() == [updated]
    assert api.delete_todo(todo['id']) is True
    assert api.todos() == []
    with pytest.raises(NotFoundError):
        api.delete_todo(todo['id'])


def test_non_json_body_is_transient():
    def handler(request):
        return httpx.Response(200, text='<html>maintenance</html>')

    api = StudyTrackerClient(httpx.Client(transport=httpx.MockTransport(handler), base_url='http://api.test'),
                             token='t')
    with pytest.raises(TransientStoreError):
        api.create_timer_session('TYT Fizik', 60, '2025-02-04')

    notifier = CountingNotifier()
    timer = SessionTimer(ApiSessionGateway(api), notifier, today=lambda: '2025-02-04')
    timer.start_stopwatch()
    for _ in range(15):
        timer.tick()
    timer.pause_stopwatch()
    assert timer.save_stopwatch() is True
    assert notifier.errors
    assert not timer.saving
    assert timer.stopwatch.elapsed == 15
