from flask import Blueprint, jsonify, request, current_app
from truthroom import notifier
from truthroom.codes import normalize_room_code
from truthroom.errors import RoomError, InvalidRequest
from truthroom.services.rooms import store
from truthroom.socketio_events import relay_player_action


rooms = Blueprint('rooms', __name__)


@rooms.errorhandler(RoomError)
def handle_room_error(exc: RoomError):
    if exc.status >= 500:
        current_app.logger.warning(f"[api-error] {exc.code}: {exc.message}")
    return jsonify(exc.to_dict()), exc.status


def _publish(snapshot: dict) -> dict:
    notifier.publish(snapshot)
    return snapshot


@rooms.route('', methods=['POST'])
def create_room():
    snapshot = store.create_room()
    # A reused code must not inherit the old room's watermark or listeners
    notifier.discard_room(snapshot['room_id'])
    return jsonify(_publish(snapshot)), 201


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    return jsonify(store.get_room(normalize_room_code(room_id)))


@rooms.route('/<string:room_id>/join', methods=['POST'])
def join_room(room_id):
    snapshot = store.join_room(normalize_room_code(room_id))
    return jsonify(_publish(snapshot))


@rooms.route('/<string:room_id>/leave', methods=['POST'])
def leave_room(room_id):
    code = normalize_room_code(room_id)
    snapshot = _publish(store.leave_room(code))
    if snapshot['player_count'] == 0:
        notifier.discard_room(code, notify=True)
    return jsonify(snapshot)


@rooms.route('/<string:room_id>/questions', methods=['POST'])
def submit_question(room_id):
    data = request.get_json(silent=True) or {}
    snapshot = store.submit_question(normalize_room_code(room_id), data.get('text'))
    return jsonify(_publish(snapshot)), 201


@rooms.route('/<string:room_id>/start', methods=['POST'])
def start_game(room_id):
    snapshot = store.start_game(normalize_room_code(room_id))
    return jsonify(_publish(snapshot))


@rooms.route('/<string:room_id>/draw', methods=['POST'])
def draw_question(room_id):
    snapshot = store.draw_question(normalize_room_code(room_id))
    return jsonify(_publish(snapshot))


@rooms.route('/<string:room_id>/end', methods=['POST'])
def end_game(room_id):
    snapshot = store.end_game(normalize_room_code(room_id))
    return jsonify(_publish(snapshot))


@rooms.route('/<string:room_id>/actions', methods=['POST'])
def forward_action(room_id):
    """Forward a guest's action to the host (HTTP path for polling clients)."""
    data = request.get_json(silent=True) or {}
    delivered = relay_player_action(
        normalize_room_code(room_id),
        data.get('participant_id'),
        {'type': data.get('type'), 'payload': data.get('payload')},
    )
    return jsonify({'delivered': delivered}), 202


@rooms.route('/<string:room_id>/actions', methods=['GET'])
def pull_actions(room_id):
    """Hand queued forwarded actions to a host that polls instead of subscribing."""
    code = normalize_room_code(room_id)
    participant_id = request.args.get('participant_id', '')
    snapshot = store.get_room(code)
    if not participant_id or participant_id != snapshot['host_id']:
        raise InvalidRequest('only the host may pull forwarded actions', room_id=code)
    return jsonify({'requests': notifier.drain_pending(code)})
