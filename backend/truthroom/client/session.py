"""Room session client: one participant's live view of one room.

Intents from the presentation layer become either a direct mutator call
(when this participant is the host) or a request forwarded to the host.
Neither path touches local state; the view only changes when the change
notifier delivers an authoritative snapshot.
"""
import atexit
import enum
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from truthroom.actions import PlayerAction, action_message
from truthroom.codes import generate_participant_id, normalize_room_code
from truthroom.errors import InvalidRequest, InvariantViolation, NotFound, RoomError, StoreUnavailable
from truthroom.rules import ENDED, PLAYING, WAITING, can_start, start_shortfall

from .identity import FileIdentityCache, MemoryIdentityCache
from .state import (
    INITIAL_STATE,
    NO_ROOM,
    RoomView,
    create_room_action,
    join_room_action,
    leave_game_action,
    reduce,
    set_client_id_action,
    update_state_action,
)
from .store import HttpRoomStore
from .transport import PollingTransport, SocketIOTransport

logger = logging.getLogger(__name__)

Listener = Callable[[RoomView], None]


class Route(enum.Enum):
    HOST_EXECUTE = 'host_execute'
    FORWARD_TO_HOST = 'forward_to_host'


HANDLERS = {
    PlayerAction.SUBMIT_QUESTION: lambda store, room_id, payload: store.submit_question(room_id, payload),
    PlayerAction.START_GAME: lambda store, room_id, payload: store.start_game(room_id),
    PlayerAction.DRAW_QUESTION: lambda store, room_id, payload: store.draw_question(room_id),
    PlayerAction.END_GAME: lambda store, room_id, payload: store.end_game(room_id),
}


def route_for(view: RoomView) -> Route:
    return Route.HOST_EXECUTE if view.is_host else Route.FORWARD_TO_HOST


def check_preconditions(view: RoomView, action: PlayerAction, payload: Any) -> Any:
    """Reject an action locally before any mutator runs. Returns the cleaned payload."""
    if view.status == NO_ROOM or not view.room_id:
        raise InvariantViolation('not in a room')
    if action is PlayerAction.SUBMIT_QUESTION:
        text = str(payload or '').strip()
        if not text:
            raise InvalidRequest('question text is required', room_id=view.room_id)
        if view.status == ENDED:
            raise InvariantViolation('the game has ended; no more questions', room_id=view.room_id)
        return text
    if action is PlayerAction.START_GAME:
        if view.status != WAITING:
            raise InvariantViolation(f'cannot start a game that is {view.status}', room_id=view.room_id)
        if not can_start(view.player_count, view.question_count, view.min_players, view.min_questions):
            shortfall = start_shortfall(view.player_count, view.question_count, view.min_players, view.min_questions)
            raise InvariantViolation(f'need {shortfall} to start', room_id=view.room_id)
        return None
    if view.status != PLAYING:
        verb = 'draw' if action is PlayerAction.DRAW_QUESTION else 'end'
        raise InvariantViolation(f'cannot {verb} while the game is {view.status}', room_id=view.room_id)
    return None


class RoomSession:
    def __init__(self, store, transport, identity=None, read_retries: int = 3):
        self._store = store
        self._transport = transport
        self._identity = identity if identity is not None else MemoryIdentityCache()
        self._read_retries = read_retries
        self._state = INITIAL_STATE
        self._lock = threading.RLock()
        # Forwarded requests run one at a time in the host process
        self._host_lock = threading.Lock()
        self._listeners: List[Listener] = []
        self._exit_hook_installed = False

    @classmethod
    def from_config(cls, config) -> 'RoomSession':
        store = HttpRoomStore.from_config(config)
        if config.transport == 'polling':
            transport = PollingTransport(store, interval=config.poll_interval)
        else:
            transport = SocketIOTransport(config.server_url, connect_timeout=config.request_timeout)
        return cls(store, transport, FileIdentityCache(config.identity_path), read_retries=config.read_retries)

    # -- local state -------------------------------------------------------

    @property
    def view(self) -> RoomView:
        with self._lock:
            return self._state

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _apply(self, action: Dict[str, Any], accept: Optional[Callable[[RoomView], bool]] = None) -> bool:
        with self._lock:
            before = self._state
            if accept is not None and not accept(before):
                return False
            after = self._state = reduce(before, action)
        if after != before:
            for listener in list(self._listeners):
                try:
                    listener(after)
                except Exception:
                    logger.exception('[listener-error] listener %r failed', listener)
        return True

    def _on_state(self, snapshot: Dict[str, Any]) -> None:
        """Fold an authoritative snapshot from the notifier into the view.

        Snapshots for another room, or older than what is already shown,
        are ignored; replaying the same snapshot changes nothing.
        """
        def _accept(current: RoomView) -> bool:
            if current.status == NO_ROOM or snapshot.get('room_id') != current.room_id:
                return False
            return int(snapshot.get('version') or 0) >= current.version

        if not self._apply(update_state_action(snapshot), accept=_accept):
            logger.debug('[state-ignored] room=%s version=%s', snapshot.get('room_id'), snapshot.get('version'))

    def _on_notifier_error(self, payload: Dict[str, Any]) -> None:
        view = self.view
        if payload.get('error') == NotFound.code and payload.get('room_id') in (None, view.room_id):
            logger.warning('[room-vanished] room=%s', view.room_id)
            self._transport.unsubscribe()
            self._apply(leave_game_action(), accept=lambda current: current.room_id == view.room_id)
            self._identity.clear()

    def _subscribe(self, room_id: str) -> None:
        self._transport.subscribe(
            room_id, self.view.participant_id, self._on_state, self._on_host_request, self._on_notifier_error
        )

    def _attach(self, room_id: str) -> None:
        """Subscribe to a room just entered; undo the entry if the notifier is unreachable."""
        try:
            self._subscribe(room_id)
        except StoreUnavailable:
            logger.warning('[session-attach-failed] room=%s', room_id)
            self._transport.unsubscribe()
            try:
                self._store.leave_room(room_id)
            except RoomError as exc:
                logger.warning('[session-rollback-failed] room=%s error=%s', room_id, exc.message)
            self._apply(leave_game_action())
            raise

    # -- intents -----------------------------------------------------------

    def create_room(self) -> RoomView:
        if self.view.status != NO_ROOM:
            self.leave_room()
        room = self._store.create_room()
        self._apply(create_room_action(room))
        self._attach(room['room_id'])
        self._identity.save(room['room_id'], room['host_id'])
        logger.info('[session-create] room=%s', room['room_id'])
        return self.view

    def join_room(self, room_id: str) -> RoomView:
        code = normalize_room_code(room_id)
        current = self.view
        if current.status != NO_ROOM:
            if current.room_id == code:
                # Already counted; only the live feed may need restoring
                if not self._transport.is_subscribed(code):
                    self._subscribe(code)
                return self.view
            self.leave_room()
        room = self._store.join_room(code)
        participant_id = self.view.participant_id or generate_participant_id()
        self._apply(set_client_id_action(participant_id))
        self._apply(join_room_action(room))
        self._attach(code)
        self._identity.save(code, participant_id)
        logger.info('[session-join] room=%s players=%s', code, room.get('player_count'))
        return self.view

    def recover(self) -> bool:
        """Re-attach to the room remembered by the identity cache.

        A pure read: the player count is not incremented again.
        """
        if self.view.status != NO_ROOM:
            return False
        entry = self._identity.load()
        if not entry:
            return False
        try:
            room = self._store.get_room(entry['room_id'], retries=self._read_retries)
        except (NotFound, InvalidRequest):
            logger.info('[session-recover-miss] room=%s', entry['room_id'])
            self._identity.clear()
            return False
        self._apply(join_room_action(room))
        self._apply(set_client_id_action(entry['participant_id']))
        try:
            self._subscribe(room['room_id'])
        except StoreUnavailable:
            # Keep the identity so a later recover() can try again
            self._transport.unsubscribe()
            self._apply(leave_game_action())
            raise
        logger.info('[session-recover] room=%s host=%s', room['room_id'], self.view.is_host)
        return True

    def send_player_action(self, message: Dict[str, Any]) -> Route:
        action = PlayerAction.parse((message or {}).get('type'))
        if action is None:
            raise InvalidRequest(f"unknown player action {(message or {}).get('type')!r}")
        view = self.view
        payload = check_preconditions(view, action, message.get('payload'))
        route = route_for(view)
        if route is Route.HOST_EXECUTE:
            with self._host_lock:
                HANDLERS[action](self._store, view.room_id, payload)
        else:
            self._transport.forward(view.room_id, view.participant_id, action_message(action, payload))
        logger.info('[action] room=%s type=%s route=%s', view.room_id, action.value, route.value)
        return route

    def submit_question(self, text: str) -> Route:
        return self.send_player_action({'type': PlayerAction.SUBMIT_QUESTION.value, 'payload': text})

    def start_game(self) -> Route:
        return self.send_player_action({'type': PlayerAction.START_GAME.value})

    def draw_question(self) -> Route:
        return self.send_player_action({'type': PlayerAction.DRAW_QUESTION.value})

    def end_game(self) -> Route:
        return self.send_player_action({'type': PlayerAction.END_GAME.value})

    def leave_room(self) -> RoomView:
        view = self.view
        if view.status == NO_ROOM:
            return view
        try:
            self._store.leave_room(view.room_id)
        except NotFound:
            logger.info('[session-leave] room=%s already gone', view.room_id)
        self._transport.unsubscribe()
        self._apply(leave_game_action())
        self._identity.clear()
        return self.view

    # -- host side ---------------------------------------------------------

    def _on_host_request(self, request: Dict[str, Any]) -> None:
        """Run a guest's forwarded action against the store on their behalf."""
        view = self.view
        message = request.get('action') or {}
        action = PlayerAction.parse(message.get('type'))
        if not view.is_host or request.get('room_id') != view.room_id or action is None:
            logger.warning('[host-request-dropped] room=%s type=%s', request.get('room_id'), message.get('type'))
            return
        try:
            with self._host_lock:
                HANDLERS[action](self._store, view.room_id, message.get('payload'))
        except RoomError as exc:
            logger.warning(
                '[host-request-rejected] room=%s type=%s requester=%s error=%s',
                view.room_id, action.value, request.get('requester'), exc.message,
            )

    # -- lifecycle ---------------------------------------------------------

    def install_exit_hook(self) -> None:
        """Fire a best-effort leave when the process exits."""
        if not self._exit_hook_installed:
            atexit.register(self._leave_on_exit)
            self._exit_hook_installed = True

    def _leave_on_exit(self) -> None:
        view = self.view
        try:
            if view.status != NO_ROOM:
                self._store.leave_room(view.room_id)
        except RoomError as exc:
            logger.warning('[exit-leave-failed] room=%s error=%s', view.room_id, exc.message)
        finally:
            self._transport.close()

    def close(self) -> None:
        self._transport.close()
        close_store = getattr(self._store, 'close', None)
        if close_store is not None:
            close_store()
