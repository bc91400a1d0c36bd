from pathlib import Path

import pytest

from truthroom import create_app
from truthroom.client import ClientConfig, PollingTransport, RoomSession, SocketIOTransport, build_session
from truthroom.errors import ConfigurationError
from conftest import TestConfig


def test_client_config_from_env(tmp_path):
    config = ClientConfig.from_env({
        'TRUTHROOM_SERVER_URL': 'http://rooms.example:5000/',
        'TRUTHROOM_TRANSPORT': 'Polling',
        'TRUTHROOM_POLL_INTERVAL_SEC': '0.5',
        'TRUTHROOM_READ_RETRIES': '1',
        'TRUTHROOM_IDENTITY_PATH': str(tmp_path / 'id.json'),
    })
    assert config.server_url == 'http://rooms.example:5000'
    assert config.transport == 'polling'
    assert config.poll_interval == 0.5
    assert config.read_retries == 1
    assert config.identity_path == tmp_path / 'id.json'


def test_client_config_defaults():
    config = ClientConfig.from_env({'TRUTHROOM_SERVER_URL': 'https://rooms.example'})
    assert config.transport == 'socketio'
    assert config.identity_path == Path.home() / '.truthroom' / 'session.json'


@pytest.mark.parametrize('environ', [
    {},
    {'TRUTHROOM_SERVER_URL': 'rooms.example'},
    {'TRUTHROOM_SERVER_URL': 'http://rooms.example', 'TRUTHROOM_TRANSPORT': 'carrier-pigeon'},
    {'TRUTHROOM_SERVER_URL': 'http://rooms.example', 'TRUTHROOM_POLL_INTERVAL_SEC': 'soon'},
])
def test_client_config_rejects_bad_settings(environ):
    with pytest.raises(ConfigurationError):
        ClientConfig.from_env(environ)


def test_build_session_picks_transport(tmp_path):
    config = ClientConfig('http://localhost:5000', transport='polling', identity_path=tmp_path / 'id.json')
    session = build_session(config)
    assert isinstance(session, RoomSession)
    assert isinstance(session._transport, PollingTransport)
    session.close()

    session = RoomSession.from_config(ClientConfig('http://localhost:5000', identity_path=tmp_path / 'id.json'))
    assert isinstance(session._transport, SocketIOTransport)
    session.close()


def test_server_requires_database_url():
    class MissingStore(TestConfig):
        SQLALCHEMY_DATABASE_URI = None

    with pytest.raises(ConfigurationError):
        create_app(MissingStore)


def test_server_rejects_malformed_database_url():
    class BadStore(TestConfig):
        SQLALCHEMY_DATABASE_URI = 'not a url'

    with pytest.raises(ConfigurationError):
        create_app(BadStore)
