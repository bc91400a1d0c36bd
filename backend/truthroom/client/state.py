"""Local mirror of one room and the reducer that folds actions into it.

The reducer is pure: ``reduce(state, action)`` returns a new ``RoomView``
and never touches the network. Only ``UPDATE_STATE`` and ``JOIN_ROOM``
carry authoritative room data; nothing here applies a player action
optimistically.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from truthroom.rules import MIN_PLAYERS, MIN_QUESTIONS, WAITING, can_start

NO_ROOM = 'no-room'

CREATE_ROOM = 'CREATE_ROOM'
JOIN_ROOM = 'JOIN_ROOM'
SET_CLIENT_ID = 'SET_CLIENT_ID'
UPDATE_STATE = 'UPDATE_STATE'
LEAVE_GAME = 'LEAVE_GAME'

# Wire key -> RoomView attribute
ROOM_FIELDS = {
    'room_id': 'room_id',
    'host_id': 'host_id',
    'player_count': 'player_count',
    'questions': 'questions',
    'used_questions': 'used_questions',
    'current_question': 'current_question',
    'status': 'status',
    'version': 'version',
    'min_players': 'min_players',
    'min_questions': 'min_questions',
}


@dataclass(frozen=True)
class RoomView:
    room_id: Optional[str] = None
    host_id: Optional[str] = None
    player_count: int = 0
    questions: Tuple[str, ...] = field(default_factory=tuple)
    used_questions: Tuple[str, ...] = field(default_factory=tuple)
    current_question: Optional[str] = None
    status: str = NO_ROOM
    version: int = 0
    participant_id: Optional[str] = None
    # Start floor as the server enforces it
    min_players: int = MIN_PLAYERS
    min_questions: int = MIN_QUESTIONS

    @property
    def is_host(self) -> bool:
        return bool(self.participant_id) and self.participant_id == self.host_id

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def used_count(self) -> int:
        return len(self.used_questions)

    @property
    def can_start(self) -> bool:
        return self.status == WAITING and can_start(self.player_count, self.question_count, self.min_players, self.min_questions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'room_id': self.room_id,
            'player_count': self.player_count,
            'question_count': self.question_count,
            'used_count': self.used_count,
            'current_question': self.current_question,
            'is_host': self.is_host,
        }


INITIAL_STATE = RoomView()


def _room_changes(partial: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a (partial) wire room into RoomView field values.

    Arrays are taken wholesale: payloads always carry the full current list.
    """
    changes = {}
    for key, attr in ROOM_FIELDS.items():
        if key not in partial:
            continue
        value = partial[key]
        if key in ('questions', 'used_questions'):
            value = tuple(value or ())
        elif key in ('player_count', 'version'):
            value = int(value or 0)
        elif key in ('min_players', 'min_questions'):
            if value is None:
                continue
            value = int(value)
        changes[attr] = value
    return changes


def reduce(state: RoomView, action: Dict[str, Any]) -> RoomView:
    action_type = action.get('type')
    payload = action.get('payload') or {}

    if action_type == CREATE_ROOM:
        return RoomView(
            room_id=payload['room_id'],
            host_id=payload['host_id'],
            player_count=1,
            status=WAITING,
            version=int(payload.get('version') or 0),
            participant_id=payload['host_id'],
            **_room_changes({k: payload[k] for k in ('min_players', 'min_questions') if k in payload}),
        )
    if action_type in (JOIN_ROOM, UPDATE_STATE):
        return replace(state, **_room_changes(payload))
    if action_type == SET_CLIENT_ID:
        return replace(state, participant_id=payload['participant_id'])
    if action_type == LEAVE_GAME:
        return replace(INITIAL_STATE, participant_id=state.participant_id)
    return state


def create_room_action(room: Dict[str, Any]) -> Dict[str, Any]:
    keys = ('room_id', 'host_id', 'version', 'min_players', 'min_questions')
    return {'type': CREATE_ROOM, 'payload': {k: room[k] for k in keys if k in room}}


def join_room_action(room: Dict[str, Any]) -> Dict[str, Any]:
    return {'type': JOIN_ROOM, 'payload': room}


def set_client_id_action(participant_id: str) -> Dict[str, Any]:
    return {'type': SET_CLIENT_ID, 'payload': {'participant_id': participant_id}}


def update_state_action(partial: Dict[str, Any]) -> Dict[str, Any]:
    return {'type': UPDATE_STATE, 'payload': partial}


def leave_game_action() -> Dict[str, Any]:
    return {'type': LEAVE_GAME}
