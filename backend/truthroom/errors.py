"""Error taxonomy shared by the server and the room session client."""


class RoomError(Exception):
    """Base class for room-domain errors."""

    code = 'room_error'
    status = 500

    def __init__(self, message: str = '', room_id: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.room_id = room_id

    def to_dict(self) -> dict:
        payload = {'error': self.code, 'message': self.message}
        if self.room_id:
            payload['room_id'] = self.room_id
        return payload


class NotFound(RoomError):
    """The room code does not resolve to a live room."""

    code = 'room_not_found'
    status = 404


class InvalidRequest(RoomError):
    """Malformed input, e.g. an empty question."""

    code = 'invalid_request'
    status = 400


class InvalidRoomCode(InvalidRequest):
    code = 'invalid_room_code'


class InvariantViolation(RoomError):
    """The action would break a room invariant (start floor, status order)."""

    code = 'invariant_violation'
    status = 409


class StoreUnavailable(RoomError):
    """The store or notifier could not be reached, or gave up under contention."""

    code = 'store_unavailable'
    status = 503


class ConfigurationError(RoomError):
    """Store endpoint or credentials are unset or invalid. Fatal at startup."""

    code = 'configuration_error'


_BY_CODE = {cls.code: cls for cls in (NotFound, InvalidRequest, InvalidRoomCode, InvariantViolation, StoreUnavailable)}


def error_from_payload(status: int, payload: dict | None) -> RoomError:
    """Rebuild a RoomError from an HTTP error response."""
    payload = payload or {}
    cls = _BY_CODE.get(payload.get('error'))
    if cls is None:
        if status == 404:
            cls = NotFound
        elif status == 409:
            cls = InvariantViolation
        elif 400 <= status < 500:
            cls = InvalidRequest
        else:
            cls = StoreUnavailable
    return cls(payload.get('message') or f'HTTP {status}', room_id=payload.get('room_id'))
