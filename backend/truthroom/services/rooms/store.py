"""Atomic mutators over the room store.

Every function here runs as one transaction scoped to a single room row and
returns the committed snapshot in wire shape, ready to be published.
Counters and appends are server-side expressions; phase changes and draws
are compare-and-swap on ``Room.version`` so two writers never clobber each
other, whatever order the database commits them in.
"""
from contextlib import contextmanager
import random
import time

from flask import current_app
from sqlalchemy import case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from truthroom import db
from truthroom.codes import generate_participant_id
from truthroom.errors import InvalidRequest, InvariantViolation, NotFound, StoreUnavailable
from truthroom.models import Question, Room, generate_room_code
from truthroom.rules import ENDED, MIN_PLAYERS, MIN_QUESTIONS, PLAYING, WAITING, can_start, start_shortfall

CREATE_ATTEMPTS = 10


@contextmanager
def _transaction(op: str, room_id: str | None = None):
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning(f"[store-error] op={op} room={room_id} error={exc.__class__.__name__}: {exc}")
        raise StoreUnavailable(f'{op} failed: room store unavailable', room_id=room_id) from exc
    except Exception:
        db.session.rollback()
        raise


def _bump() -> dict:
    return {Room.version: Room.version + 1, Room.updated_at: time.time()}


def _load_room(room_id: str) -> Room:
    room = Room.query.populate_existing().filter_by(room_id=room_id).first()
    if room is None:
        raise NotFound(f'room {room_id} not found', room_id=room_id)
    return room


def _snapshot(room_id: str) -> dict:
    return _load_room(room_id).to_dict()


def _pool(room_id: str):
    return Question.query.filter_by(room_id=room_id, drawn_seq=None).order_by(Question.id)


def _compare_and_swap(room: Room, values: dict) -> bool:
    """Write ``values`` only if nobody committed since ``room`` was read."""
    swapped = Room.query.filter_by(room_id=room.room_id, version=room.version).update(
        {**values, Room.version: room.version + 1, Room.updated_at: time.time()},
        synchronize_session=False,
    )
    return swapped == 1


def _run_cas(op: str, room_id: str, step) -> dict:
    attempts = int(current_app.config.get('ROOM_CAS_MAX_ATTEMPTS', 25))
    for attempt in range(1, attempts + 1):
        with _transaction(op, room_id):
            room = _load_room(room_id)
            if step(room):
                snapshot = _snapshot(room_id)
                db.session.commit()
                return snapshot
            db.session.rollback()
        current_app.logger.info(f"[cas-retry] op={op} room={room_id} attempt={attempt}")
        time.sleep(random.uniform(0, 0.002 * attempt))
    raise StoreUnavailable(f'{op} gave up after {attempts} conflicting attempts', room_id=room_id)


def create_room() -> dict:
    """Insert a fresh waiting room with one player and a new host id."""
    with _transaction('create'):
        for _ in range(CREATE_ATTEMPTS):
            room = Room(
                room_id=generate_room_code(),
                host_id=generate_participant_id(),
                player_count=1,
                status=WAITING,
            )
            db.session.add(room)
            try:
                db.session.flush()
            except IntegrityError:
                # A concurrent create took the code between sampling and insert
                db.session.rollback()
                continue
            snapshot = room.to_dict()
            db.session.commit()
            current_app.logger.info(f"[room-create] room={room.room_id}")
            return snapshot
    raise StoreUnavailable('could not allocate a unique room code')


def get_room(room_id: str) -> dict:
    with _transaction('get', room_id):
        snapshot = _snapshot(room_id)
        db.session.rollback()
        return snapshot


def join_room(room_id: str) -> dict:
    with _transaction('join', room_id):
        updated = Room.query.filter_by(room_id=room_id).update(
            {Room.player_count: Room.player_count + 1, **_bump()},
            synchronize_session=False,
        )
        if not updated:
            raise NotFound(f'room {room_id} not found', room_id=room_id)
        snapshot = _snapshot(room_id)
        db.session.commit()
    current_app.logger.info(f"[room-join] room={room_id} players={snapshot['player_count']} version={snapshot['version']}")
    return snapshot


def leave_room(room_id: str) -> dict:
    """Decrement the player count (floored at 0); an empty room is deleted."""
    with _transaction('leave', room_id):
        updated = Room.query.filter_by(room_id=room_id).update(
            {Room.player_count: case((Room.player_count > 0, Room.player_count - 1), else_=0), **_bump()},
            synchronize_session=False,
        )
        if not updated:
            raise NotFound(f'room {room_id} not found', room_id=room_id)
        snapshot = _snapshot(room_id)
        if snapshot['player_count'] == 0:
            Question.query.filter_by(room_id=room_id).delete(synchronize_session=False)
            Room.query.filter_by(room_id=room_id).delete(synchronize_session=False)
        db.session.commit()
    current_app.logger.info(f"[room-leave] room={room_id} players={snapshot['player_count']} deleted={snapshot['player_count'] == 0}")
    return snapshot


def clean_question(text) -> str:
    cleaned = str(text or '').strip()
    limit = int(current_app.config.get('MAX_QUESTION_LENGTH', 280))
    if not cleaned:
        raise InvalidRequest('question text is required')
    if len(cleaned) > limit:
        raise InvalidRequest(f'question text is limited to {limit} characters')
    return cleaned


def submit_question(room_id: str, text) -> dict:
    """Append a question to the pool. Rejected once the room has ended."""
    cleaned = clean_question(text)
    with _transaction('submit', room_id):
        updated = Room.query.filter(Room.room_id == room_id, Room.status != ENDED).update(
            _bump(), synchronize_session=False
        )
        if not updated:
            _load_room(room_id)
            raise InvariantViolation('the game has ended; no more questions', room_id=room_id)
        db.session.add(Question(room_id=room_id, text=cleaned))
        snapshot = _snapshot(room_id)
        db.session.commit()
    current_app.logger.info(f"[room-submit] room={room_id} pool={len(snapshot['questions'])} version={snapshot['version']}")
    return snapshot


def start_game(room_id: str) -> dict:
    min_players = int(current_app.config.get('MIN_PLAYERS', MIN_PLAYERS))
    min_questions = int(current_app.config.get('MIN_QUESTIONS', MIN_QUESTIONS))

    def _start(room: Room) -> bool:
        if room.status != WAITING:
            raise InvariantViolation(f'cannot start a game that is {room.status}', room_id=room_id)
        pool_size = _pool(room_id).count()
        if not can_start(room.player_count, pool_size, min_players, min_questions):
            shortfall = start_shortfall(room.player_count, pool_size, min_players, min_questions)
            raise InvariantViolation(f'need {shortfall} to start', room_id=room_id)
        return _compare_and_swap(room, {Room.status: PLAYING})

    snapshot = _run_cas('start', room_id, _start)
    current_app.logger.info(f"[room-start] room={room_id} players={snapshot['player_count']} pool={len(snapshot['questions'])}")
    return snapshot


def draw_question(room_id: str) -> dict:
    """Move one uniformly random pooled question to the used list.

    Drawing from an empty pool ends the game instead.
    """
    def _draw(room: Room) -> bool:
        if room.status != PLAYING:
            raise InvariantViolation(f'cannot draw while the game is {room.status}', room_id=room_id)
        pool = _pool(room_id).all()
        if not pool:
            return _compare_and_swap(room, {Room.status: ENDED})
        picked = pool[random.randrange(len(pool))]
        seq = room.draw_count + 1
        if not _compare_and_swap(room, {Room.current_question: picked.text, Room.draw_count: seq}):
            return False
        moved = Question.query.filter_by(id=picked.id, drawn_seq=None).update(
            {Question.drawn_seq: seq}, synchronize_session=False
        )
        return moved == 1

    snapshot = _run_cas('draw', room_id, _draw)
    current_app.logger.info(
        f"[room-draw] room={room_id} status={snapshot['status']} used={len(snapshot['used_questions'])} remaining={len(snapshot['questions'])}"
    )
    return snapshot


def end_game(room_id: str) -> dict:
    def _end(room: Room) -> bool:
        if room.status != PLAYING:
            raise InvariantViolation(f'cannot end a game that is {room.status}', room_id=room_id)
        return _compare_and_swap(room, {Room.status: ENDED})

    snapshot = _run_cas('end', room_id, _end)
    current_app.logger.info(f"[room-end] room={room_id} used={len(snapshot['used_questions'])}")
    return snapshot
