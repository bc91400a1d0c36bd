import pytest

from truthroom.client.transport import PollingTransport, SocketIOTransport
from truthroom.errors import StoreUnavailable
from conftest import FakeSocketClient


def _sink():
    got = []
    return got, got.append


def test_subscribe_connects_and_sends_subscription():
    fake = FakeSocketClient()
    transport = SocketIOTransport('http://localhost:5000', client=fake)
    states, on_state = _sink()
    transport.subscribe('AB12', 'p1', on_state, lambda r: None)
    assert fake.connected
    assert fake.emitted == [('subscribe', {'room_id': 'AB12', 'participant_id': 'p1'})]


def test_resubscribes_after_reconnect():
    fake = FakeSocketClient()
    transport = SocketIOTransport('http://localhost:5000', client=fake)
    transport.subscribe('AB12', 'p1', lambda s: None, lambda r: None)
    fake.emitted.clear()
    fake.fire('connect')
    assert fake.emitted == [('subscribe', {'room_id': 'AB12', 'participant_id': 'p1'})]


def test_switching_rooms_unsubscribes_previous():
    fake = FakeSocketClient()
    transport = SocketIOTransport('http://localhost:5000', client=fake)
    transport.subscribe('AB12', 'p1', lambda s: None, lambda r: None)
    transport.subscribe('CD34', 'p1', lambda s: None, lambda r: None)
    assert fake.emitted[-2:] == [
        ('unsubscribe', {'room_id': 'AB12'}),
        ('subscribe', {'room_id': 'CD34', 'participant_id': 'p1'}),
    ]


def test_events_are_filtered_by_room():
    fake = FakeSocketClient()
    transport = SocketIOTransport('http://localhost:5000', client=fake)
    states, on_state = _sink()
    requests, on_request = _sink()
    transport.subscribe('AB12', 'p1', on_state, on_request)

    fake.fire('state_update', {'room_id': 'AB12', 'version': 2})
    fake.fire('state_update', {'room_id': 'ZZZZ', 'version': 9})
    fake.fire('host_request', {'room_id': 'AB12', 'action': {'type': 'START_GAME'}})
    fake.fire('host_request', {'room_id': 'ZZZZ', 'action': {'type': 'START_GAME'}})

    assert states == [{'room_id': 'AB12', 'version': 2}]
    assert len(requests) == 1


def test_room_error_reaches_callback():
    fake = FakeSocketClient()
    transport = SocketIOTransport('http://localhost:5000', client=fake)
    errors, on_error = _sink()
    transport.subscribe('AB12', 'p1', lambda s: None, lambda r: None, on_error)
    fake.fire('room_error', {'error': 'room_not_found', 'room_id': 'AB12'})
    assert errors == [{'error': 'room_not_found', 'room_id': 'AB12'}]


def test_forward_emits_player_action():
    fake = FakeSocketClient()
    transport = SocketIOTransport('http://localhost:5000', client=fake)
    transport.subscribe('AB12', 'p1', lambda s: None, lambda r: None)
    transport.forward('AB12', 'p1', {'type': 'DRAW_QUESTION', 'payload': None})
    assert fake.emitted[-1] == ('player_action', {
        'room_id': 'AB12', 'participant_id': 'p1', 'action': {'type': 'DRAW_QUESTION', 'payload': None},
    })


def test_forward_while_disconnected_raises():
    transport = SocketIOTransport('http://localhost:5000', client=FakeSocketClient())
    with pytest.raises(StoreUnavailable):
        transport.forward('AB12', 'p1', {'type': 'END_GAME'})


def test_connect_failure_is_store_unavailable():
    fake = FakeSocketClient(fail_connect=1)
    transport = SocketIOTransport('http://localhost:5000', client=fake)
    with pytest.raises(StoreUnavailable):
        transport.subscribe('AB12', 'p1', lambda s: None, lambda r: None)
    # A refused connect leaves no half-registered subscription behind
    assert not transport.is_subscribed('AB12')

    transport.subscribe('AB12', 'p1', lambda s: None, lambda r: None)
    assert transport.is_subscribed('AB12')
    assert fake.emitted == [('subscribe', {'room_id': 'AB12', 'participant_id': 'p1'})]


def test_close_unsubscribes_and_disconnects():
    fake = FakeSocketClient()
    transport = SocketIOTransport('http://localhost:5000', client=fake)
    transport.subscribe('AB12', 'p1', lambda s: None, lambda r: None)
    transport.close()
    assert fake.emitted[-1] == ('unsubscribe', {'room_id': 'AB12'})
    assert not fake.connected


class FlakyStore:
    def __init__(self, snapshots):
        self.snapshots = list(snapshots)
        self.pulled = []

    def get_room(self, room_id, retries=0):
        item = self.snapshots.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def pull_actions(self, room_id, participant_id):
        self.pulled.append(participant_id)
        return [{'room_id': room_id, 'action': {'type': 'START_GAME'}}]


def test_polling_survives_outage_and_pulls_for_host():
    store = FlakyStore([StoreUnavailable('down'), {'room_id': 'AB12', 'host_id': 'h1', 'version': 4}])
    transport = PollingTransport(store, autostart=False)
    states, on_state = _sink()
    requests, on_request = _sink()
    transport.subscribe('AB12', 'h1', on_state, on_request)

    assert transport.poll_once() is False
    assert transport.poll_once() is True
    assert states == [{'room_id': 'AB12', 'host_id': 'h1', 'version': 4}]
    assert store.pulled == ['h1']
    assert requests[0]['action']['type'] == 'START_GAME'


def test_polling_guest_does_not_pull():
    store = FlakyStore([{'room_id': 'AB12', 'host_id': 'h1', 'version': 4}])
    transport = PollingTransport(store, autostart=False)
    transport.subscribe('AB12', 'g1', lambda s: None, lambda r: None)
    transport.poll_once()
    assert store.pulled == []


def test_polling_thread_delivers_and_stops():
    store = FlakyStore([{'room_id': 'AB12', 'host_id': 'h1', 'version': 1}] * 100)
    transport = PollingTransport(store, interval=0.01)
    states, on_state = _sink()
    transport.subscribe('AB12', 'g1', on_state, lambda r: None)
    import time
    deadline = time.time() + 3.0
    while time.time() < deadline and not states:
        time.sleep(0.01)
    transport.unsubscribe()
    assert states
    count = len(states)
    time.sleep(0.05)
    assert len(states) == count
