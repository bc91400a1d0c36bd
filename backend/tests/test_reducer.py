from truthroom.client.state import (
    INITIAL_STATE,
    NO_ROOM,
    create_room_action,
    join_room_action,
    leave_game_action,
    reduce,
    set_client_id_action,
    update_state_action,
)

ROOM = {
    'room_id': 'AB12',
    'host_id': 'host1',
    'player_count': 2,
    'questions': ['Q1', 'Q2'],
    'used_questions': [],
    'current_question': None,
    'status': 'waiting',
    'version': 3,
}


def test_initial_state():
    assert INITIAL_STATE.status == NO_ROOM
    assert INITIAL_STATE.room_id is None
    assert INITIAL_STATE.questions == ()
    assert not INITIAL_STATE.is_host


def test_create_room_sets_host():
    state = reduce(INITIAL_STATE, create_room_action({'room_id': 'AB12', 'host_id': 'host1', 'version': 1}))
    assert state.room_id == 'AB12'
    assert state.player_count == 1
    assert state.status == 'waiting'
    assert state.is_host


def test_start_floor_follows_snapshot():
    state = reduce(INITIAL_STATE, create_room_action({'room_id': 'AB12', 'host_id': 'host1', 'version': 1, 'min_questions': 2}))
    assert state.min_questions == 2
    state = reduce(state, update_state_action(dict(ROOM, version=4)))
    assert state.can_start
    state = reduce(state, update_state_action(dict(ROOM, version=5, min_players=3)))
    assert state.min_players == 3
    assert not state.can_start


def test_join_then_set_client_id():
    state = reduce(INITIAL_STATE, join_room_action(ROOM))
    state = reduce(state, set_client_id_action('guest7'))
    assert state.room_id == 'AB12'
    assert state.questions == ('Q1', 'Q2')
    assert state.participant_id == 'guest7'
    assert not state.is_host


def test_update_state_is_idempotent():
    joined = reduce(INITIAL_STATE, join_room_action(ROOM))
    once = reduce(joined, update_state_action(ROOM))
    twice = reduce(once, update_state_action(ROOM))
    assert once == twice == joined


def test_update_state_merges_partial():
    state = reduce(INITIAL_STATE, join_room_action(ROOM))
    state = reduce(state, update_state_action({'player_count': 3}))
    assert state.player_count == 3
    assert state.questions == ('Q1', 'Q2')
    assert state.room_id == 'AB12'


def test_update_state_replaces_arrays():
    state = reduce(INITIAL_STATE, join_room_action(ROOM))
    state = reduce(state, update_state_action({'questions': ['Q2'], 'used_questions': ['Q1'], 'current_question': 'Q1'}))
    assert state.questions == ('Q2',)
    assert state.used_questions == ('Q1',)
    assert state.current_question == 'Q1'


def test_can_start_tracks_floor():
    state = reduce(INITIAL_STATE, join_room_action(ROOM))
    assert not state.can_start
    state = reduce(state, update_state_action({'questions': ['Q1', 'Q2', 'Q3']}))
    assert state.can_start
    state = reduce(state, update_state_action({'status': 'playing'}))
    assert not state.can_start


def test_leave_game_keeps_participant_id():
    state = reduce(INITIAL_STATE, join_room_action(ROOM))
    state = reduce(state, set_client_id_action('guest7'))
    state = reduce(state, leave_game_action())
    assert state.status == NO_ROOM
    assert state.room_id is None
    assert state.participant_id == 'guest7'


def test_unknown_action_is_ignored():
    state = reduce(INITIAL_STATE, join_room_action(ROOM))
    assert reduce(state, {'type': 'SOMETHING_ELSE'}) is state


def test_view_to_dict():
    state = reduce(INITIAL_STATE, join_room_action(ROOM))
    state = reduce(state, set_client_id_action('host1'))
    assert state.to_dict() == {
        'status': 'waiting',
        'room_id': 'AB12',
        'player_count': 2,
        'question_count': 2,
        'used_count': 0,
        'current_question': None,
        'is_host': True,
    }
