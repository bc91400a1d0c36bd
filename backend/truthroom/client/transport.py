"""Client halves of the change notifier.

Push (Socket.IO) and pull (polling) are two strategies behind one interface;
the session never depends on which one delivers its snapshots.
"""
import logging
import threading
from typing import Any, Callable, Dict, Optional

import socketio
from socketio import exceptions as sio_exceptions

from truthroom.errors import NotFound, RoomError, StoreUnavailable

logger = logging.getLogger(__name__)

StateCallback = Callable[[Dict[str, Any]], None]
RequestCallback = Callable[[Dict[str, Any]], None]
ErrorCallback = Callable[[Dict[str, Any]], None]


class NotifierTransport:
    """Contract every change-notifier transport satisfies.

    * ``subscribe`` scopes delivery to one room; a new subscribe replaces the old.
    * ``on_state`` receives full room snapshots, in commit order per room.
    * ``on_request`` receives actions forwarded to this participant as host.
    * ``forward`` sends an action toward the room's host.
    """

    def subscribe(self, room_id: str, participant_id: str, on_state: StateCallback,
                  on_request: RequestCallback, on_error: Optional[ErrorCallback] = None) -> None:
        raise NotImplementedError

    def unsubscribe(self) -> None:
        raise NotImplementedError

    def is_subscribed(self, room_id: str) -> bool:
        """True while updates for ``room_id`` are being delivered."""
        raise NotImplementedError

    def forward(self, room_id: str, participant_id: str, action: Dict[str, Any]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        self.unsubscribe()


class _Subscription:
    def __init__(self, room_id, participant_id, on_state, on_request, on_error):
        self.room_id = room_id
        self.participant_id = participant_id
        self.on_state = on_state
        self.on_request = on_request
        self.on_error = on_error


class SocketIOTransport(NotifierTransport):
    """Push delivery over the server's ``/ws`` Socket.IO namespace.

    On every (re)connect the subscription is re-sent, and the server answers
    with the full current state, so nothing is lost across a reconnect.
    """

    def __init__(self, server_url: str, client: Optional[socketio.Client] = None,
                 namespace: str = '/ws', connect_timeout: float = 5.0):
        self._url = server_url
        self._namespace = namespace
        self._connect_timeout = connect_timeout
        self._sio = client if client is not None else socketio.Client(reconnection=True)
        self._lock = threading.Lock()
        self._sub: Optional[_Subscription] = None
        self._sio.on('connect', self._handle_connect, namespace=namespace)
        self._sio.on('state_update', self._handle_state, namespace=namespace)
        self._sio.on('host_request', self._handle_request, namespace=namespace)
        self._sio.on('room_error', self._handle_error, namespace=namespace)

    def _current(self) -> Optional[_Subscription]:
        with self._lock:
            return self._sub

    def _connect(self) -> None:
        try:
            self._sio.connect(self._url, namespaces=[self._namespace], wait_timeout=self._connect_timeout)
        except sio_exceptions.ConnectionError as exc:
            raise StoreUnavailable(f'cannot reach change notifier at {self._url}: {exc}') from exc

    def _emit_subscribe(self, sub: _Subscription) -> None:
        self._sio.emit('subscribe', {'room_id': sub.room_id, 'participant_id': sub.participant_id},
                       namespace=self._namespace)

    def _handle_connect(self):
        sub = self._current()
        if sub is not None:
            logger.info('[notifier-connect] room=%s resubscribing', sub.room_id)
            self._emit_subscribe(sub)

    def _handle_state(self, snapshot):
        sub = self._current()
        if sub is not None and (snapshot or {}).get('room_id') == sub.room_id:
            sub.on_state(snapshot)

    def _handle_request(self, request):
        sub = self._current()
        if sub is not None and (request or {}).get('room_id') == sub.room_id:
            sub.on_request(request)

    def _handle_error(self, payload):
        sub = self._current()
        logger.warning('[notifier-error] %s', payload)
        if sub is not None and sub.on_error is not None:
            sub.on_error(payload or {})

    def subscribe(self, room_id, participant_id, on_state, on_request, on_error=None):
        sub = _Subscription(room_id, participant_id, on_state, on_request, on_error)
        with self._lock:
            previous, self._sub = self._sub, sub
        if not self._sio.connected:
            # the connect handler sends the subscription
            try:
                self._connect()
            except StoreUnavailable:
                with self._lock:
                    if self._sub is sub:
                        self._sub = None
                raise
            return
        if previous is not None and previous.room_id != room_id:
            self._sio.emit('unsubscribe', {'room_id': previous.room_id}, namespace=self._namespace)
        self._emit_subscribe(sub)

    def unsubscribe(self):
        with self._lock:
            sub, self._sub = self._sub, None
        if sub is not None and self._sio.connected:
            self._sio.emit('unsubscribe', {'room_id': sub.room_id}, namespace=self._namespace)

    def is_subscribed(self, room_id):
        sub = self._current()
        return sub is not None and sub.room_id == room_id and self._sio.connected

    def forward(self, room_id, participant_id, action):
        if not self._sio.connected:
            raise StoreUnavailable('not connected to the change notifier', room_id=room_id)
        self._sio.emit('player_action', {'room_id': room_id, 'participant_id': participant_id, 'action': action},
                       namespace=self._namespace)

    def close(self):
        self.unsubscribe()
        if self._sio.connected:
            self._sio.disconnect()


class PollingTransport(NotifierTransport):
    """Pull delivery: fetch the full room every ``interval`` seconds.

    A host also drains actions the server queued for it. Failures while
    polling are logged and retried on the next cycle.
    """

    def __init__(self, store, interval: float = 2.0, autostart: bool = True):
        self._store = store
        self._interval = interval
        self._autostart = autostart
        self._lock = threading.Lock()
        self._sub: Optional[_Subscription] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def subscribe(self, room_id, participant_id, on_state, on_request, on_error=None):
        with self._lock:
            self._sub = _Subscription(room_id, participant_id, on_state, on_request, on_error)
        if self._autostart:
            self._start()

    def _start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop,), name='truthroom-poller', daemon=True)
        self._thread.start()

    def _run(self, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception('[poll-error] unexpected failure while polling')
            stop.wait(self._interval)

    def poll_once(self) -> bool:
        """Fetch and deliver one snapshot. Returns False if nothing was delivered."""
        with self._lock:
            sub = self._sub
        if sub is None:
            return False
        try:
            snapshot = self._store.get_room(sub.room_id)
        except NotFound as exc:
            logger.warning('[poll-missing] room=%s', sub.room_id)
            if sub.on_error is not None:
                sub.on_error(exc.to_dict())
            return False
        except StoreUnavailable as exc:
            logger.warning('[poll-retry] room=%s error=%s', sub.room_id, exc)
            return False
        if self._sub is not sub:
            return False
        sub.on_state(snapshot)
        if sub.participant_id and sub.participant_id == snapshot.get('host_id'):
            try:
                requests = self._store.pull_actions(sub.room_id, sub.participant_id)
            except RoomError as exc:
                logger.warning('[poll-actions-retry] room=%s error=%s', sub.room_id, exc)
                requests = []
            for request in requests:
                sub.on_request(request)
        return True

    def unsubscribe(self):
        with self._lock:
            self._sub = None
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._interval + 1)

    def is_subscribed(self, room_id):
        with self._lock:
            return self._sub is not None and self._sub.room_id == room_id

    def forward(self, room_id, participant_id, action):
        self._store.forward_action(room_id, participant_id, action)
