"""
Shared fixtures: a test app, signed-in users of each role and a fake LMS API.

Route modules reach the API through ``app.lms_api``; ``fake_api.stub`` swaps
single functions on that module and records every call. Anything left
unstubbed fails fast with a network error instead of reaching out.
"""
import pytest
import requests

from app import create_app, socketio
from app import decorators, lms_api
from app import events  # noqa: F401  -- register socket handlers before any init_app
from config import TestingConfig

USERS = {
    'student': {'uid': 'stu-1', 'role': 'student', 'displayName': 'Sam Student', 'email': 'sam@example.com'},
    'teacher': {'uid': 'tea-1', 'role': 'teacher', 'displayName': 'Tara Teacher', 'email': 'tara@example.com'},
    'admin': {'uid': 'adm-1', 'role': 'admin', 'displayName': 'Ada Admin', 'email': 'ada@example.com'},
}


class _OfflineSession:
    def request(self, *args, **kwargs):
        raise requests.ConnectionError('network disabled in tests')


@pytest.fixture(autouse=True)
def offline(monkeypatch):
    monkeypatch.setattr(lms_api, 'get_session', lambda: _OfflineSession())


@pytest.fixture
def app(tmp_path):
    class Config(TestingConfig):
        LOG_DIR = str(tmp_path / 'logs')

    return create_app(Config)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(monkeypatch):
    """Sign in as ``role``; returns the user dict the session resolves to."""
    def _login(role='student', **overrides):
        user = dict(USERS[role], **overrides)
        user['id'] = user['uid']
        monkeypatch.setattr(decorators, '_verify_session', lambda: dict(user))
        return user
    return _login


class FakeApi:
    def __init__(self, monkeypatch):
        self._monkeypatch = monkeypatch
        self.calls = []

    def stub(self, name, result=None, error=None):
        def fake(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            if error is not None:
                raise error
            return result
        self._monkeypatch.setattr(lms_api, name, fake)

    def called(self, name):
        return [(args, kwargs) for n, args, kwargs in self.calls if n == name]


@pytest.fixture
def fake_api(monkeypatch):
    return FakeApi(monkeypatch)


@pytest.fixture
def emitted(monkeypatch):
    """Capture server-side Socket.IO pushes made by route handlers."""
    events = []
    monkeypatch.setattr(socketio, 'emit', lambda event, payload=None, **kwargs: events.append((event, payload, kwargs)))
    return events


@pytest.fixture
def flashes(client):
    """Messages flashed so far and not yet rendered, as (category, message) pairs."""
    def _flashes():
        with client.session_transaction() as sess:
            return sess.get('_flashes', [])
    return _flashes
