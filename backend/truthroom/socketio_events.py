from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from truthroom import socketio, notifier
from truthroom.actions import PlayerAction
from truthroom.codes import normalize_room_code
from truthroom.errors import InvalidRequest, RoomError
from truthroom.services.rooms import store
from truthroom.services.rooms.notifier import NAMESPACE, channel


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def _room_error(exc: RoomError, room_id=None):
    payload = exc.to_dict()
    if room_id and 'room_id' not in payload:
        payload['room_id'] = room_id
    emit('room_error', payload)
    return {'ok': False, 'error': exc.code}


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*args):
    sub = notifier.registry.remove(_get_sid())
    if sub:
        current_app.logger.info(f"[unsubscribe] room={sub.room_id} participant={sub.participant_id} reason=disconnect")


def handle_subscribe(data):
    payload = data or {}
    participant_id = str(payload.get('participant_id') or '').strip()
    try:
        room_id = normalize_room_code(payload.get('room_id'))
        snapshot = store.get_room(room_id)
    except RoomError as exc:
        return _room_error(exc, payload.get('room_id'))

    sid = _get_sid()
    previous = notifier.registry.add(sid, room_id, participant_id, is_host=bool(participant_id) and participant_id == snapshot['host_id'])
    if previous and previous.room_id != room_id:
        leave_room(channel(previous.room_id))
    join_room(channel(room_id))
    is_host = notifier.registry.get(sid).is_host
    current_app.logger.info(f"[subscribe] room={room_id} participant={participant_id or '-'} host={is_host}")

    emit('subscribed', {'room_id': room_id, 'is_host': is_host})
    notifier.send_snapshot(sid, snapshot)
    if is_host:
        notifier.flush_pending_to(sid, room_id)
    return {'ok': True, 'room_id': room_id, 'is_host': is_host}


def handle_unsubscribe(data):
    sid = _get_sid()
    sub = notifier.registry.remove(sid)
    raw = (data or {}).get('room_id') or (sub.room_id if sub else '')
    if raw:
        leave_room(channel(str(raw).strip().upper()))
    emit('unsubscribed', {'room_id': raw or None})
    return {'ok': True}


def relay_player_action(room_id: str, participant_id: str, action: dict) -> bool:
    """Relay a guest's action to whichever socket holds host authority.

    Returns True when a connected host received it; False when it was queued
    for a polling host. Raises RoomError for unknown rooms or actions.
    """
    action = action or {}
    action_type = PlayerAction.parse(action.get('type'))
    if action_type is None:
        raise InvalidRequest(f"unknown action {action.get('type')!r}", room_id=room_id)
    store.get_room(room_id)
    return notifier.forward_to_host(room_id, {
        'room_id': room_id,
        'requester': str(participant_id or ''),
        'action': {'type': action_type.value, 'payload': action.get('payload')},
    })


def handle_player_action(data):
    payload = data or {}
    try:
        room_id = normalize_room_code(payload.get('room_id'))
        delivered = relay_player_action(room_id, payload.get('participant_id'), payload.get('action'))
    except RoomError as exc:
        return _room_error(exc, payload.get('room_id'))
    return {'ok': True, 'delivered': delivered}


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'subscribe': handle_subscribe,
        'unsubscribe': handle_unsubscribe,
        'player_action': handle_player_action,
        'ping': handle_ping,
    }
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        for name, handler in handlers.items():
            socketio.on_event(name, handler, namespace=namespace)
