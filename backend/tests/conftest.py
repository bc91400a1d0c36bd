import os
import sys

import httpx
import pytest
from socketio import exceptions as sio_exceptions

# Ensure the backend root (containing the `truthroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from truthroom import create_app, db, socketio
from truthroom.client.store import HttpRoomStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    MIN_PLAYERS = 2
    MIN_QUESTIONS = 3
    MAX_QUESTION_LENGTH = 280
    ROOM_CAS_MAX_ATTEMPTS = 25
    PENDING_REQUEST_LIMIT = 50
    ROOM_TTL_SEC = 0
    REAPER_INTERVAL_SEC = 0


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import truthroom.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def file_app(tmp_path):
    """App backed by a SQLite file so several threads can write concurrently."""

    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'rooms.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'timeout': 30}}
        ROOM_CAS_MAX_ATTEMPTS = 200

    application = create_app(FileConfig)
    with application.app_context():
        import truthroom.models  # noqa: F401
        db.create_all()
        db.session.remove()
    yield application
    with application.app_context():
        db.drop_all()
        db.engine.dispose()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def http_store(flask_app):
    """Client-side store talking to the app in-process through WSGI."""
    http_client = httpx.Client(transport=httpx.WSGITransport(app=flask_app), base_url='http://testserver')
    store = HttpRoomStore(http_client, retry_delay=0)
    yield store
    store.close()


def create_room(client):
    res = client.post('/api/rooms')
    assert res.status_code == 201
    return res.get_json()


def ready_room(client, players=2, questions=('Q1', 'Q2', 'Q3')):
    """A waiting room that meets the start floor."""
    room = create_room(client)
    code = room['room_id']
    for _ in range(players - 1):
        client.post(f'/api/rooms/{code}/join')
    for text in questions:
        client.post(f'/api/rooms/{code}/questions', json={'text': text})
    return client.get(f'/api/rooms/{code}').get_json()


class FakeSocketClient:
    """Stands in for socketio.Client: records emits, lets tests fire events.

    The first ``fail_connect`` connect attempts are refused.
    """

    def __init__(self, fail_connect=0):
        self.handlers = {}
        self.emitted = []
        self.connected = False
        self.fail_connect = fail_connect

    def on(self, event, handler, namespace=None):
        self.handlers[(event, namespace)] = handler

    def connect(self, url, namespaces=None, wait_timeout=None):
        if self.fail_connect:
            self.fail_connect -= 1
            raise sio_exceptions.ConnectionError('refused')
        self.connected = True
        self.fire('connect')

    def emit(self, event, data=None, namespace=None):
        self.emitted.append((event, data))

    def disconnect(self):
        self.connected = False

    def fire(self, event, *args):
        return self.handlers[(event, '/ws')](*args)
