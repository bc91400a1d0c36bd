"""Change notifier: fans committed room snapshots out to subscribers and
relays forwarded player actions to the room's host.

Socket.IO does the delivery; this module owns who is listening where.
"""
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, List, Optional

from truthroom.errors import NotFound

NAMESPACE = '/ws'


def channel(room_id: str) -> str:
    return f"room:{room_id}"


@dataclass
class Subscription:
    sid: str
    room_id: str
    participant_id: str
    is_host: bool


class SubscriberRegistry:
    """Live socket subscriptions, one per sid."""

    def __init__(self):
        self._lock = Lock()
        self._by_sid: Dict[str, Subscription] = {}

    def add(self, sid: str, room_id: str, participant_id: str, is_host: bool) -> Optional[Subscription]:
        """Register ``sid`` for a room; returns the subscription it replaced, if any."""
        with self._lock:
            previous = self._by_sid.get(sid)
            self._by_sid[sid] = Subscription(sid, room_id, participant_id, is_host)
            return previous

    def remove(self, sid: str) -> Optional[Subscription]:
        with self._lock:
            return self._by_sid.pop(sid, None)

    def get(self, sid: str) -> Optional[Subscription]:
        with self._lock:
            return self._by_sid.get(sid)

    def host_sids(self, room_id: str) -> List[str]:
        with self._lock:
            return [s.sid for s in self._by_sid.values() if s.room_id == room_id and s.is_host]

    def drop_room(self, room_id: str) -> List[Subscription]:
        with self._lock:
            dropped = [s for s in self._by_sid.values() if s.room_id == room_id]
            for s in dropped:
                del self._by_sid[s.sid]
            return dropped

    def __len__(self):
        with self._lock:
            return len(self._by_sid)


class ChangeNotifier:
    """Flask extension publishing room snapshots over Socket.IO."""

    def __init__(self, app=None, socketio=None):
        self.socketio = None
        self.logger = None
        self._guard = Lock()
        self._pending_limit = 50
        self._reset()
        if app is not None:
            self.init_app(app, socketio)

    def _reset(self):
        self.registry = SubscriberRegistry()
        self._pending: Dict[str, deque] = {}
        self._last_version: Dict[str, int] = {}
        self._room_locks: Dict[str, Lock] = {}

    def init_app(self, app, socketio):
        # Subscriptions and watermarks belong to one app's store
        self._reset()
        self.socketio = socketio
        self.logger = app.logger
        self._pending_limit = int(app.config.get('PENDING_REQUEST_LIMIT', 50))
        app.extensions['truthroom_notifier'] = self

    def _room_lock(self, room_id: str) -> Lock:
        with self._guard:
            lock = self._room_locks.get(room_id)
            if lock is None:
                lock = self._room_locks[room_id] = Lock()
            return lock

    def publish(self, snapshot: Dict[str, Any]) -> bool:
        """Emit ``state_update`` for a committed snapshot.

        Snapshots not newer than the last one published for the room are
        dropped, so every subscriber observes commits in store order.
        """
        room_id = snapshot['room_id']
        version = int(snapshot.get('version') or 0)
        with self._room_lock(room_id):
            if version <= self._last_version.get(room_id, 0):
                self.logger.debug(f"[notify-stale] room={room_id} version={version}")
                return False
            self._last_version[room_id] = version
            self.socketio.emit('state_update', snapshot, to=channel(room_id), namespace=NAMESPACE)
        return True

    def send_snapshot(self, sid: str, snapshot: Dict[str, Any]) -> None:
        """Full current state for one subscriber, e.g. after (re)subscribing."""
        self.socketio.emit('state_update', snapshot, to=sid, namespace=NAMESPACE)

    def forward_to_host(self, room_id: str, request: Dict[str, Any]) -> bool:
        """Relay a player action to the host. Returns True if a host socket got it;
        otherwise the request waits in the room's queue for the host to poll."""
        hosts = self.registry.host_sids(room_id)
        if hosts:
            for sid in hosts:
                self.socketio.emit('host_request', request, to=sid, namespace=NAMESPACE)
            self.logger.info(f"[forward] room={room_id} type={request['action']['type']} hosts={len(hosts)}")
            return True
        with self._guard:
            queue = self._pending.get(room_id)
            if queue is None:
                queue = self._pending[room_id] = deque(maxlen=self._pending_limit)
            queue.append(request)
        self.logger.info(f"[forward-queued] room={room_id} type={request['action']['type']}")
        return False

    def drain_pending(self, room_id: str) -> List[Dict[str, Any]]:
        with self._guard:
            queue = self._pending.pop(room_id, None)
        return list(queue) if queue else []

    def flush_pending_to(self, sid: str, room_id: str) -> int:
        pending = self.drain_pending(room_id)
        for request in pending:
            self.socketio.emit('host_request', request, to=sid, namespace=NAMESPACE)
        return len(pending)

    def discard_room(self, room_id: str, notify: bool = False) -> None:
        """Forget everything about a room code and close its channel.

        With ``notify`` the remaining subscribers are told the room is gone.
        """
        target = channel(room_id)
        if notify:
            gone = NotFound(f'room {room_id} was closed', room_id=room_id)
            self.socketio.emit('room_error', gone.to_dict(), to=target, namespace=NAMESPACE)
        self.socketio.close_room(target, namespace=NAMESPACE)
        self.registry.drop_room(room_id)
        with self._guard:
            self._pending.pop(room_id, None)
            self._room_locks.pop(room_id, None)
        self._last_version.pop(room_id, None)
